from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from logger import settlement_logger
from models import PlanStatus, TransactionType
from ledger.errors import LedgerError, PersistenceFailure
from utils import local_now

PROCESSED = "processed"
ALREADY_PAID = "already_paid"
EXPIRED = "expired"
ERRORS = "errors"


@dataclass
class SettlementResult:
    settlement_date: date
    processed: int = 0
    already_paid: int = 0
    expired: int = 0
    errors: int = 0
    total_payout: Decimal = field(default_factory=lambda: Decimal("0.00"))

    def record(self, outcome, amount):
        setattr(self, outcome, getattr(self, outcome) + 1)
        self.total_payout += amount

    @property
    def ok(self):
        return self.errors == 0

    def to_dict(self):
        return {
            "settlementDate": self.settlement_date.isoformat(),
            "processed": self.processed,
            "alreadyPaid": self.already_paid,
            "expired": self.expired,
            "errors": self.errors,
            "totalPayout": float(self.total_payout),
        }


class DailyIncomeSettlement:
    """
    Credits each active, unexpired plan's daily income once per calendar day.

    Safe to re-run: a plan already paid today is skipped, and the unique
    (reference_id, settlement_date) constraint stops a concurrent run from
    paying it twice. Each plan is committed on its own so one failure never
    blocks the rest.
    """

    def __init__(self, store, ledger, logger=settlement_logger):
        self.store = store
        self.ledger = ledger
        self.logger = logger

    def run(self, now=None) -> SettlementResult:
        now = now or local_now()
        today = now.date()
        result = SettlementResult(settlement_date=today)

        try:
            plans = self.store.active_user_plans()
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Daily income: failed to fetch active plans: {e}")
            raise PersistenceFailure("Failed to fetch active plans") from e

        if not plans:
            self.logger.info("No active plans found for daily income distribution")
            return result

        self.logger.info(f"Daily income for {today.isoformat()}: {len(plans)} active plans")

        for plan in plans:
            result.record(*self.settle_plan(plan, now))

        self.logger.info(
            f"Daily income distribution completed. Processed {result.processed}, "
            f"already paid {result.already_paid}, expired {result.expired}, "
            f"errors {result.errors}, payout {result.total_payout}"
        )
        return result

    def settle_plan(self, plan, now):
        """Returns (outcome, amount credited)."""
        today = now.date()
        plan_id = plan.id
        try:
            if plan.is_expired(now):
                self._expire(plan)
                return EXPIRED, Decimal("0.00")

            if self.store.daily_income_paid(plan_id, today):
                return ALREADY_PAID, Decimal("0.00")

            entry = self.ledger.credit_balance(
                plan.user_id,
                plan.daily_income,
                TransactionType.DAILY_INCOME,
                f"Daily income for {plan.plan_name} plan",
                reference_id=plan_id,
                settlement_date=today,
                now=now,
            )
            self.store.commit()
            return PROCESSED, Decimal(entry.amount)

        except PersistenceFailure as e:
            self.store.rollback()
            if e.details.get("conflict"):
                self.logger.warning(f"Plan {plan_id} was paid for {today} by a concurrent run, skipping")
                return ALREADY_PAID, Decimal("0.00")
            self.logger.error(f"Daily income failed for plan {plan_id}: {e}")
            return ERRORS, Decimal("0.00")
        except (LedgerError, SQLAlchemyError) as e:
            self.store.rollback()
            self.logger.error(f"Daily income failed for plan {plan_id}: {e}")
            return ERRORS, Decimal("0.00")
        except Exception:
            self.store.rollback()
            self.logger.exception(f"Unexpected error settling plan {plan_id}")
            return ERRORS, Decimal("0.00")

    def _expire(self, plan):
        plan_id = plan.id
        try:
            plan.status = PlanStatus.EXPIRED.value
            self.store.commit()
            self.logger.info(f"Plan {plan_id} passed its end date, marked expired")
        except SQLAlchemyError as e:
            # Payment is gated on the date, a stale status is harmless.
            self.store.rollback()
            self.logger.warning(f"Could not mark plan {plan_id} expired: {e}")
