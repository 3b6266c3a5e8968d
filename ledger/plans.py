# plans.py - plan catalog and plan purchase
from datetime import timedelta
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from logger import ledger_logger
from models import Plan, UserPlan, PlanStatus, TransactionType
from ledger.errors import (LedgerError, NotFound, InsufficientFunds, MonthlyLimitExceeded,
                           ValidationError, PersistenceFailure)
from utils import new_id, local_now, month_bounds, positive_money


class PlanService:

    def __init__(self, store, ledger, logger=ledger_logger):
        self.store = store
        self.ledger = ledger
        self.logger = logger

    # ==========================================================
    #                  CATALOG
    # ==========================================================
    def create_plan(self, name, price, daily_income, duration_days, total_return, is_active=True) -> Plan:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")
        try:
            duration_days = int(duration_days)
        except (TypeError, ValueError):
            raise ValidationError("duration_days must be a whole number of days")
        if duration_days <= 0:
            raise ValidationError("duration_days must be greater than 0")

        plan = Plan(
            name=name,
            price=positive_money(price, "price"),
            daily_income=positive_money(daily_income, "daily_income"),
            duration_days=duration_days,
            total_return=positive_money(total_return, "total_return"),
            is_active=bool(is_active),
        )
        try:
            self.store.add(plan)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Failed to create plan {name}: {e}")
            raise PersistenceFailure("Failed to create plan") from e

        self.logger.info(f"Plan created: {plan.id} {plan.name} price={plan.price}")
        return plan

    # ==========================================================
    #                  PURCHASE
    # ==========================================================
    def purchase_plan(self, user_id, plan_id, now=None):
        """
        Debit the plan price and open a subscription, all-or-nothing.
        Returns (user_plan, transaction).
        """
        now = now or local_now()

        plan = self.store.get_active_plan(plan_id)
        if plan is None:
            raise NotFound("Plan not found or not active", plan_id=plan_id)

        price = Decimal(plan.price)
        month_start, month_end = month_bounds(now)
        user_plan_id = new_id()
        try:
            # The user row stays locked from these checks until commit, so two
            # concurrent purchases cannot both pass the monthly limit.
            user = self.store.lock_user(user_id)
            if user is None:
                raise NotFound("User not found", user_id=user_id)

            if Decimal(user.balance or 0) < price:
                raise InsufficientFunds(
                    "Insufficient balance to purchase this plan",
                    balance=str(user.balance),
                    required=str(price),
                )

            if self.store.count_user_plans_created_between(user.id, month_start, month_end):
                raise MonthlyLimitExceeded(
                    "You already purchased a plan this month. You can only purchase one plan per month."
                )

            with self.store.savepoint():
                entry = self.ledger.debit_balance(
                    user.id,
                    price,
                    TransactionType.PLAN_PURCHASE,
                    f"Purchased {plan.name} plan",
                    reference_id=user_plan_id,
                    now=now,
                )
                user.total_invested = Decimal(user.total_invested or 0) + price

                user_plan = UserPlan(
                    id=user_plan_id,
                    user_id=user.id,
                    plan_id=plan.id,
                    plan_name=plan.name,
                    plan_price=price,
                    daily_income=plan.daily_income,
                    duration_days=plan.duration_days,
                    total_return=plan.total_return,
                    status=PlanStatus.ACTIVE.value,
                    start_date=now,
                    end_date=now + timedelta(days=plan.duration_days),
                    created_at=now,
                )
                self._insert_user_plan(user_plan)
            self.store.commit()

        except LedgerError:
            self.store.rollback()
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            self.logger.error(f"Plan purchase rolled back for user {user_id}, plan {plan_id}: {e}")
            raise PersistenceFailure("Failed to create plan purchase") from e

        self.logger.info(
            f"User {user_id} purchased plan {plan.name} ({user_plan.id}) for {price}, "
            f"active until {user_plan.end_date.isoformat()}"
        )
        return user_plan, entry

    def _insert_user_plan(self, user_plan):
        self.store.add(user_plan)
        self.store.flush()
        return user_plan
