from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger.errors import (InsufficientFunds, MonthlyLimitExceeded, NotFound,
                           PersistenceFailure, ValidationError)
from models import Transaction, UserPlan

NOW = datetime(2026, 3, 5, 10, 0, 0)


def test_purchase_debits_price_and_opens_subscription(services, make_user, make_plan):
    user = make_user(balance="1000.00")
    plan = make_plan(price="600.00", daily_income="60.00", duration_days=10)

    user_plan, entry = services.plans.purchase_plan(user.id, plan.id, now=NOW)

    user = services.store.get_user(user.id)
    assert user.balance == Decimal("400.00")
    assert user.total_invested == Decimal("600.00")

    assert user_plan.status == "active"
    assert user_plan.plan_price == Decimal("600.00")
    assert user_plan.daily_income == Decimal("60.00")
    assert user_plan.start_date == NOW
    assert user_plan.end_date == NOW + timedelta(days=10)

    assert entry.type == "plan_purchase"
    assert entry.reference_id == user_plan.id
    assert entry.balance_before == Decimal("1000.00")
    assert entry.balance_after == Decimal("400.00")


def test_subscription_keeps_price_after_catalog_change(services, make_user, make_plan):
    user = make_user(balance="1000.00")
    plan = make_plan(price="600.00", daily_income="60.00")
    user_plan, _ = services.plans.purchase_plan(user.id, plan.id, now=NOW)

    plan.daily_income = Decimal("99.00")
    services.store.commit()

    assert services.store.session.get(UserPlan, user_plan.id).daily_income == Decimal("60.00")


def test_second_purchase_in_same_month_is_refused(services, make_user, make_plan):
    user = make_user(balance="2000.00")
    plan = make_plan(price="600.00")
    services.plans.purchase_plan(user.id, plan.id, now=NOW)

    with pytest.raises(MonthlyLimitExceeded):
        services.plans.purchase_plan(user.id, plan.id, now=NOW + timedelta(days=20))

    assert services.store.get_user(user.id).balance == Decimal("1400.00")
    assert UserPlan.query.count() == 1


def test_purchase_allowed_again_next_month(services, make_user, make_plan):
    user = make_user(balance="2000.00")
    plan = make_plan(price="600.00")
    services.plans.purchase_plan(user.id, plan.id, now=NOW)

    services.plans.purchase_plan(user.id, plan.id, now=datetime(2026, 4, 1, 0, 0, 1))

    assert services.store.get_user(user.id).balance == Decimal("800.00")
    assert UserPlan.query.count() == 2


def test_monthly_limit_counts_expired_subscriptions(services, make_user, make_plan):
    user = make_user(balance="2000.00")
    plan = make_plan(price="600.00", duration_days=1)
    user_plan, _ = services.plans.purchase_plan(user.id, plan.id, now=NOW)
    user_plan.status = "expired"
    services.store.commit()

    with pytest.raises(MonthlyLimitExceeded):
        services.plans.purchase_plan(user.id, plan.id, now=NOW + timedelta(days=3))


def test_insufficient_balance(services, make_user, make_plan):
    user = make_user(balance="599.99")
    plan = make_plan(price="600.00")

    with pytest.raises(InsufficientFunds):
        services.plans.purchase_plan(user.id, plan.id, now=NOW)

    assert services.store.get_user(user.id).balance == Decimal("599.99")
    assert Transaction.query.count() == 0


def test_inactive_or_unknown_plan(services, make_user, make_plan):
    user = make_user(balance="1000.00")
    plan = make_plan(is_active=False)

    with pytest.raises(NotFound):
        services.plans.purchase_plan(user.id, plan.id, now=NOW)
    with pytest.raises(NotFound):
        services.plans.purchase_plan(user.id, "no-such-plan", now=NOW)


def test_failed_subscription_insert_undoes_the_debit(services, make_user, make_plan, monkeypatch):
    user = make_user(balance="1000.00")
    plan = make_plan(price="600.00")

    def broken_insert(user_plan):
        raise OperationalError("INSERT INTO user_plans", {}, Exception("disk I/O error"))

    monkeypatch.setattr(services.plans, "_insert_user_plan", broken_insert)

    with pytest.raises(PersistenceFailure):
        services.plans.purchase_plan(user.id, plan.id, now=NOW)

    user = services.store.get_user(user.id)
    assert user.balance == Decimal("1000.00")
    assert user.total_invested == Decimal("0.00")
    assert Transaction.query.count() == 0
    assert UserPlan.query.count() == 0


def test_create_plan(services):
    plan = services.plans.create_plan("Silver", "300", "25", 15, "375")
    assert plan.is_active is True
    assert plan.price == Decimal("300.00")
    assert services.store.get_active_plan(plan.id) is plan


@pytest.mark.parametrize("field,value", [
    ("name", ""),
    ("price", "-1"),
    ("daily_income", "0"),
    ("duration_days", 0),
    ("duration_days", "ten"),
    ("total_return", None),
])
def test_create_plan_validation(services, field, value):
    fields = dict(name="Silver", price="300", daily_income="25", duration_days=15, total_return="375")
    fields[field] = value
    with pytest.raises(ValidationError):
        services.plans.create_plan(**fields)


def test_monthly_limit_is_checked_while_user_row_is_locked(services, make_user, make_plan, monkeypatch):
    user = make_user(balance="2000.00")
    plan = make_plan(price="600.00")
    calls = []

    lock_user = services.store.lock_user
    count = services.store.count_user_plans_created_between

    def recording_lock(user_id):
        calls.append("lock_user")
        return lock_user(user_id)

    def recording_count(*args):
        calls.append("count")
        return count(*args)

    monkeypatch.setattr(services.store, "lock_user", recording_lock)
    monkeypatch.setattr(services.store, "count_user_plans_created_between", recording_count)

    services.plans.purchase_plan(user.id, plan.id, now=NOW)

    assert calls[:2] == ["lock_user", "count"]
