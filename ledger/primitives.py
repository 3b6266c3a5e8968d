from decimal import Decimal
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from logger import ledger_logger
from models import Transaction, TransactionType
from ledger.errors import LedgerError, NotFound, InsufficientFunds, PersistenceFailure
from utils import positive_money, local_now


class LedgerService:
    """
    The only code allowed to move a wallet balance.

    Every credit/debit reads the locked user row, writes the new balance and the
    matching Transaction row inside one SAVEPOINT. If either write fails the
    savepoint is rolled back, so a balance change never outlives its audit row.
    """

    def __init__(self, store, logger=ledger_logger):
        self.store = store
        self.logger = logger

    def credit_balance(self, user_id, amount, tx_type, description, reference_id=None,
                       settlement_date=None, now=None) -> Transaction:
        return self._apply(user_id, amount, tx_type, description, reference_id,
                           settlement_date, now, credit=True)

    def debit_balance(self, user_id, amount, tx_type, description, reference_id=None,
                      now=None) -> Transaction:
        return self._apply(user_id, amount, tx_type, description, reference_id,
                           None, now, credit=False)

    def _apply(self, user_id, amount, tx_type, description, reference_id,
               settlement_date, now, credit):
        amount = positive_money(amount)
        tx_type = TransactionType(tx_type)
        if tx_type.is_credit != credit:
            raise ValueError(f"{tx_type.value} cannot be used for a {'credit' if credit else 'debit'}")

        try:
            with self.store.savepoint():
                user = self.store.lock_user(user_id)
                if user is None:
                    raise NotFound("User not found", user_id=user_id)

                balance_before = Decimal(user.balance or 0)
                if not credit and amount > balance_before:
                    raise InsufficientFunds(
                        "Insufficient balance",
                        balance=str(balance_before),
                        required=str(amount),
                    )

                balance_after = balance_before + amount if credit else balance_before - amount
                user.balance = balance_after
                self.store.flush()

                entry = Transaction(
                    user_id=user.id,
                    type=tx_type.value,
                    amount=amount,
                    description=description,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    reference_id=reference_id,
                    settlement_date=settlement_date,
                    created_at=now or local_now(),
                )
                self.store.add(entry)
                self.store.flush()

        except LedgerError:
            raise
        except IntegrityError as e:
            self.logger.warning(
                f"Ledger write conflict for user {user_id} ({tx_type.value}, ref {reference_id}): {e.orig}"
            )
            raise PersistenceFailure("Ledger write conflicted with an existing entry",
                                     conflict=True) from e
        except SQLAlchemyError as e:
            self.logger.error(f"Ledger write failed for user {user_id} ({tx_type.value}): {e}")
            raise PersistenceFailure("Failed to update balance") from e

        self.logger.info(
            f"{tx_type.value}: user {user_id} {'+' if credit else '-'}{amount} "
            f"({balance_before} -> {balance_after}) ref={reference_id}"
        )
        return entry
