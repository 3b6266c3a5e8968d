from decimal import Decimal, ROUND_HALF_UP
from datetime import timedelta
from sqlalchemy.exc import SQLAlchemyError

from logger import ledger_logger
from models import Withdrawal, WithdrawalMethod, RequestStatus, TransactionType
from ledger.errors import (LedgerError, NotFound, InvalidState, ValidationError,
                           InsufficientFunds, RateLimited, PersistenceFailure)
from utils import positive_money, local_now, CENT

# ==========================================================
#                  CONFIGURATION
# ==========================================================
class WithdrawalConfig:
    TAX_RATE = Decimal("0.18")
    COOLDOWN_HOURS = 24
    REQUIRED_DETAILS = {
        WithdrawalMethod.BANK: ("bank_name", "account_holder_name", "ifsc_code", "account_number"),
        WithdrawalMethod.UPI: ("upi_id",),
    }

    @staticmethod
    def calculate_tax(amount: Decimal, rate: Decimal) -> Decimal:
        """Tax withheld from a gross withdrawal amount."""
        return (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)

# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:

    @staticmethod
    def parse_method(method) -> WithdrawalMethod:
        if not method:
            raise ValidationError("Amount and method are required")
        try:
            return WithdrawalMethod(str(method).strip().lower())
        except ValueError:
            raise ValidationError("Withdrawal method must be 'bank' or 'upi'")

    @staticmethod
    def clean_details(method: WithdrawalMethod, method_details) -> dict:
        """Keep only the fields belonging to `method`; all of them are required."""
        method_details = method_details or {}
        details = {}
        missing = []
        for field in WithdrawalConfig.REQUIRED_DETAILS[method]:
            value = method_details.get(field)
            value = str(value).strip() if value is not None else ""
            if not value:
                missing.append(field)
            details[field] = value
        if missing:
            raise ValidationError(
                f"Missing {method.value} details: {', '.join(missing)}", missing=missing
            )
        return details

# ==========================================================
#                  WITHDRAWAL WORKFLOW
# ==========================================================
class WithdrawalService:
    """
    Payout requests. Balance and cooldown are checked when the request is made;
    the gross amount is debited only when an admin approves it.
    """

    def __init__(self, store, ledger, tax_rate=WithdrawalConfig.TAX_RATE,
                 cooldown_hours=WithdrawalConfig.COOLDOWN_HOURS, logger=ledger_logger):
        self.store = store
        self.ledger = ledger
        self.tax_rate = Decimal(str(tax_rate))
        self.cooldown = timedelta(hours=cooldown_hours)
        self.logger = logger

    def request_withdrawal(self, user_id, amount, method, method_details=None, now=None) -> Withdrawal:
        now = now or local_now()
        amount = positive_money(amount)
        method = WithdrawalValidator.parse_method(method)
        details = WithdrawalValidator.clean_details(method, method_details)

        tax_amount = WithdrawalConfig.calculate_tax(amount, self.tax_rate)
        try:
            # Balance and cooldown are checked under the user row lock, which is
            # held until the new request is committed.
            user = self.store.lock_user(user_id)
            if user is None:
                raise NotFound("User not found", user_id=user_id)

            if amount > Decimal(user.balance or 0):
                raise InsufficientFunds(
                    "Insufficient balance for withdrawal",
                    balance=str(user.balance),
                    required=str(amount),
                )

            recent = self.store.recent_open_withdrawal(user.id, now - self.cooldown)
            if recent is not None:
                raise RateLimited(
                    "You can only make one withdrawal every 24 hours",
                    retry_after=(recent.created_at + self.cooldown).isoformat(),
                )

            withdrawal = Withdrawal(
                user_id=user.id,
                amount=amount,
                tax_amount=tax_amount,
                net_amount=amount - tax_amount,
                method=method.value,
                status=RequestStatus.PENDING.value,
                created_at=now,
                updated_at=now,
                **details,
            )
            self.store.add(withdrawal)
            self.store.commit()
        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Failed to create withdrawal request for user {user_id}: {e}")
            raise PersistenceFailure("Failed to create withdrawal request") from e

        self.logger.info(
            f"Withdrawal {withdrawal.id} requested by user {user_id}: gross {amount}, "
            f"tax {tax_amount}, net {withdrawal.net_amount} via {method.value}"
        )
        return withdrawal

    def approve_withdrawal(self, withdrawal_id) -> Withdrawal:
        try:
            withdrawal = self._load_pending(withdrawal_id)
            with self.store.savepoint():
                # Balance may have moved since the request; the debit re-checks it.
                self.ledger.debit_balance(
                    withdrawal.user_id,
                    withdrawal.amount,
                    TransactionType.WITHDRAWAL,
                    f"Withdrawal approved via {withdrawal.method}",
                    reference_id=withdrawal.id,
                )
                user = self.store.get_user(withdrawal.user_id)
                user.total_withdrawn = Decimal(user.total_withdrawn or 0) + Decimal(withdrawal.amount)
                self._set_status(withdrawal, RequestStatus.APPROVED)
            self.store.commit()
        except InsufficientFunds:
            self.store.rollback()
            self.logger.warning(f"Withdrawal {withdrawal_id} approval refused: balance no longer covers it")
            raise
        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Withdrawal {withdrawal_id} approval rolled back: {e}")
            raise PersistenceFailure("Failed to approve withdrawal") from e

        self.logger.info(f"Withdrawal {withdrawal.id} approved: -{withdrawal.amount} from user {withdrawal.user_id}")
        return withdrawal

    def reject_withdrawal(self, withdrawal_id) -> Withdrawal:
        try:
            withdrawal = self._load_pending(withdrawal_id)
            self._set_status(withdrawal, RequestStatus.REJECTED)
            self.store.commit()
        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Withdrawal {withdrawal_id} rejection failed: {e}")
            raise PersistenceFailure("Failed to reject withdrawal") from e

        self.logger.info(f"Withdrawal {withdrawal.id} rejected for user {withdrawal.user_id}")
        return withdrawal

    def _load_pending(self, withdrawal_id) -> Withdrawal:
        withdrawal = self.store.lock_withdrawal(withdrawal_id)
        if withdrawal is None:
            raise NotFound("Withdrawal request not found", withdrawal_id=withdrawal_id)
        if withdrawal.status != RequestStatus.PENDING.value:
            raise InvalidState("Withdrawal request is not pending", status=withdrawal.status)
        return withdrawal

    def _set_status(self, withdrawal, status):
        withdrawal.status = status.value
        withdrawal.updated_at = local_now()
        self.store.flush()
