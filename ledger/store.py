from datetime import datetime
from typing import List, Optional

from extensions import db
from models import (User, Plan, UserPlan, Transaction, Recharge, Withdrawal,
                    TransactionType, PlanStatus, RequestStatus)


class LedgerStore:
    """
    Data access for the ledger services. Built once per application and
    shared by every workflow; all queries run on the Flask-SQLAlchemy session.
    """

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    def add(self, record):
        self.session.add(record)
        return record

    def flush(self):
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def savepoint(self):
        return self.session.begin_nested()

    # ------------------------------------------------------------------
    # Point reads
    # ------------------------------------------------------------------
    def get_user(self, user_id) -> Optional[User]:
        return self.session.get(User, user_id)

    def lock_user(self, user_id) -> Optional[User]:
        """Load the user row with FOR UPDATE so balance writes are serialised."""
        return (
            self.session.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_active_plan(self, plan_id) -> Optional[Plan]:
        return self.session.query(Plan).filter_by(id=plan_id, is_active=True).first()

    def lock_recharge(self, recharge_id) -> Optional[Recharge]:
        return (
            self.session.query(Recharge)
            .filter(Recharge.id == recharge_id)
            .with_for_update()
            .first()
        )

    def lock_withdrawal(self, withdrawal_id) -> Optional[Withdrawal]:
        return (
            self.session.query(Withdrawal)
            .filter(Withdrawal.id == withdrawal_id)
            .with_for_update()
            .first()
        )

    # ------------------------------------------------------------------
    # Range queries
    # ------------------------------------------------------------------
    def count_user_plans_created_between(self, user_id, start: datetime, end: datetime) -> int:
        return (
            self.session.query(UserPlan)
            .filter(
                UserPlan.user_id == user_id,
                UserPlan.created_at >= start,
                UserPlan.created_at < end,
            )
            .count()
        )

    def recent_open_withdrawal(self, user_id, since: datetime) -> Optional[Withdrawal]:
        return (
            self.session.query(Withdrawal)
            .filter(
                Withdrawal.user_id == user_id,
                Withdrawal.status.in_([RequestStatus.PENDING.value, RequestStatus.APPROVED.value]),
                Withdrawal.created_at >= since,
            )
            .order_by(Withdrawal.created_at.desc())
            .first()
        )

    def active_user_plans(self) -> List[UserPlan]:
        return (
            self.session.query(UserPlan)
            .filter(UserPlan.status == PlanStatus.ACTIVE.value)
            .order_by(UserPlan.created_at.asc())
            .all()
        )

    def daily_income_paid(self, user_plan_id, settlement_date) -> bool:
        return (
            self.session.query(Transaction.id)
            .filter(
                Transaction.type == TransactionType.DAILY_INCOME.value,
                Transaction.reference_id == user_plan_id,
                Transaction.settlement_date == settlement_date,
            )
            .first()
            is not None
        )

    def transactions_for_user(self, user_id, tx_type=None, since=None, until=None) -> List[Transaction]:
        query = self.session.query(Transaction).filter(Transaction.user_id == user_id)
        if tx_type is not None:
            query = query.filter(Transaction.type == tx_type)
        if since is not None:
            query = query.filter(Transaction.created_at >= since)
        if until is not None:
            query = query.filter(Transaction.created_at < until)
        return query.order_by(Transaction.created_at.desc()).all()
