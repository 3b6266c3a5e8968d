from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from logger import ledger_logger
from models import Recharge, RequestStatus, TransactionType
from ledger.errors import LedgerError, NotFound, InvalidState, ValidationError, PersistenceFailure
from utils import positive_money, local_now


class RechargeService:
    """Wallet top-ups: requested by the user, credited only when an admin approves."""

    def __init__(self, store, ledger, logger=ledger_logger):
        self.store = store
        self.ledger = ledger
        self.logger = logger

    def request_recharge(self, user_id, amount, utr, method="upi") -> Recharge:
        amount = positive_money(amount)
        utr = str(utr).strip() if utr is not None else ""
        if not utr:
            raise ValidationError("Amount and UTR are required")
        method = (method or "upi").strip().lower()

        if self.store.get_user(user_id) is None:
            raise NotFound("User not found", user_id=user_id)

        recharge = Recharge(
            user_id=user_id,
            amount=amount,
            utr=utr,
            payment_method=method,
            status=RequestStatus.PENDING.value,
        )
        try:
            self.store.add(recharge)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Failed to create recharge request for user {user_id}: {e}")
            raise PersistenceFailure("Failed to create recharge request") from e

        self.logger.info(f"Recharge {recharge.id} requested by user {user_id}: {amount} utr={recharge.utr}")
        return recharge

    def approve_recharge(self, recharge_id) -> Recharge:
        try:
            recharge = self._load_pending(recharge_id)
            with self.store.savepoint():
                self.ledger.credit_balance(
                    recharge.user_id,
                    recharge.amount,
                    TransactionType.RECHARGE,
                    f"Recharge approved via {recharge.payment_method}",
                    reference_id=recharge.id,
                )
                user = self.store.get_user(recharge.user_id)
                user.total_invested = Decimal(user.total_invested or 0) + Decimal(recharge.amount)
                self._set_status(recharge, RequestStatus.APPROVED)
            self.store.commit()
        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Recharge {recharge_id} approval rolled back: {e}")
            raise PersistenceFailure("Failed to approve recharge") from e

        self.logger.info(f"Recharge {recharge.id} approved: +{recharge.amount} to user {recharge.user_id}")
        return recharge

    def reject_recharge(self, recharge_id) -> Recharge:
        try:
            recharge = self._load_pending(recharge_id)
            self._set_status(recharge, RequestStatus.REJECTED)
            self.store.commit()
        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Recharge {recharge_id} rejection failed: {e}")
            raise PersistenceFailure("Failed to reject recharge") from e

        self.logger.info(f"Recharge {recharge.id} rejected for user {recharge.user_id}")
        return recharge

    def _load_pending(self, recharge_id) -> Recharge:
        recharge = self.store.lock_recharge(recharge_id)
        if recharge is None:
            raise NotFound("Recharge request not found", recharge_id=recharge_id)
        if recharge.status != RequestStatus.PENDING.value:
            raise InvalidState("Recharge request is not pending", status=recharge.status)
        return recharge

    def _set_status(self, recharge, status):
        recharge.status = status.value
        recharge.updated_at = local_now()
        self.store.flush()
