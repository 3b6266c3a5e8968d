# models.py - Flask-SQLAlchemy models for the Goldmine ledger
from enum import Enum
from decimal import Decimal
from flask_login import UserMixin
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from werkzeug.security import check_password_hash, generate_password_hash
from extensions import db
from utils import new_id, local_now

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class TransactionType(Enum):
    PLAN_PURCHASE = "plan_purchase"
    RECHARGE = "recharge"
    WITHDRAWAL = "withdrawal"
    DAILY_INCOME = "daily_income"

    @property
    def is_credit(self):
        return self in (TransactionType.RECHARGE, TransactionType.DAILY_INCOME)


class PlanStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class RequestStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalMethod(Enum):
    BANK = "bank"
    UPI = "upi"


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value else None

# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps (server-local time)."""
    created_at = db.Column(db.DateTime, default=local_now, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=local_now, onupdate=local_now)

# ===========================================================
# USER
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Wallet owner. `balance` only ever moves through the ledger primitives."""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    mobile = db.Column(db.String(20), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="user", index=True)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    total_invested = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    total_withdrawn = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))

    last_login = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    user_plans = db.relationship('UserPlan', back_populates='user', lazy='dynamic')
    transactions = db.relationship('Transaction', back_populates='user', lazy='dynamic')

    __table_args__ = (
        CheckConstraint('balance >= 0', name='ck_users_balance_non_negative'),
    )
    __mapper_args__ = {"version_id_col": version}

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "mobile": self.mobile,
            "role": self.role,
            "balance": _money(self.balance),
            "totalInvested": _money(self.total_invested),
            "totalWithdrawn": _money(self.total_withdrawn),
            "createdAt": _iso(self.created_at),
            "lastLogin": _iso(self.last_login),
        }

# ===========================================================
# PLAN CATALOG & SUBSCRIPTIONS
# ===========================================================

class Plan(db.Model):
    __tablename__ = 'plans'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    daily_income = db.Column(db.Numeric(18, 2), nullable=False)
    duration_days = db.Column(db.Integer, nullable=False)
    total_return = db.Column(db.Numeric(18, 2), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=local_now, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": _money(self.price),
            "dailyIncome": _money(self.daily_income),
            "durationDays": self.duration_days,
            "totalReturn": _money(self.total_return),
            "isActive": self.is_active,
        }


class UserPlan(db.Model):
    """A purchased plan. Economics are copied from the catalog at purchase time."""
    __tablename__ = 'user_plans'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    plan_id = db.Column(db.String(36), db.ForeignKey('plans.id', ondelete='SET NULL'), nullable=True)

    plan_name = db.Column(db.String(100), nullable=False)
    plan_price = db.Column(db.Numeric(18, 2), nullable=False)
    daily_income = db.Column(db.Numeric(18, 2), nullable=False)
    duration_days = db.Column(db.Integer, nullable=False)
    total_return = db.Column(db.Numeric(18, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=PlanStatus.ACTIVE.value)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=local_now, nullable=False)

    user = db.relationship('User', back_populates='user_plans')

    __table_args__ = (
        Index('idx_user_plan_user_created', 'user_id', 'created_at'),
        Index('idx_user_plan_status_end', 'status', 'end_date'),
    )

    def is_expired(self, now):
        return now > self.end_date

    def to_dict(self):
        return {
            "id": self.id,
            "planId": self.plan_id,
            "planName": self.plan_name,
            "planPrice": _money(self.plan_price),
            "dailyIncome": _money(self.daily_income),
            "durationDays": self.duration_days,
            "totalReturn": _money(self.total_return),
            "status": self.status,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
        }

# ===========================================================
# AUDIT LEDGER
# ===========================================================

class Transaction(db.Model):
    """Immutable audit row written for every balance mutation."""
    __tablename__ = 'transactions'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    description = db.Column(db.String(255))
    balance_before = db.Column(db.Numeric(18, 2), nullable=False)
    balance_after = db.Column(db.Numeric(18, 2), nullable=False)
    reference_id = db.Column(db.String(36), nullable=True, index=True)
    # Only set for daily_income rows: the calendar day being paid for.
    settlement_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=local_now, nullable=False, index=True)

    user = db.relationship('User', back_populates='transactions')

    __table_args__ = (
        UniqueConstraint('reference_id', 'settlement_date', name='uq_transactions_daily_income'),
        CheckConstraint('amount > 0', name='ck_transactions_amount_positive'),
        Index('idx_transaction_user_type_created', 'user_id', 'type', 'created_at'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "amount": _money(self.amount),
            "description": self.description,
            "balanceBefore": _money(self.balance_before),
            "balanceAfter": _money(self.balance_after),
            "referenceId": self.reference_id,
            "settlementDate": _iso(self.settlement_date),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# RECHARGES & WITHDRAWALS
# ===========================================================

class Recharge(db.Model, BaseMixin):
    __tablename__ = 'recharges'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    utr = db.Column(db.String(64), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False, default="upi")
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)

    user = db.relationship('User')

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "utr": self.utr,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Withdrawal(db.Model, BaseMixin):
    __tablename__ = 'withdrawals'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False)
    net_amount = db.Column(db.Numeric(18, 2), nullable=False)
    method = db.Column(db.String(10), nullable=False)

    bank_name = db.Column(db.String(120))
    account_holder_name = db.Column(db.String(120))
    ifsc_code = db.Column(db.String(20))
    account_number = db.Column(db.String(34))
    upi_id = db.Column(db.String(120))

    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)

    user = db.relationship('User')

    __table_args__ = (
        Index('idx_withdrawal_user_status_created', 'user_id', 'status', 'created_at'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "taxAmount": _money(self.tax_amount),
            "netAmount": _money(self.net_amount),
            "method": self.method,
            "bankName": self.bank_name,
            "accountHolderName": self.account_holder_name,
            "ifscCode": self.ifsc_code,
            "accountNumber": self.account_number,
            "upiId": self.upi_id,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
