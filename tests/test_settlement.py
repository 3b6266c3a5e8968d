from datetime import datetime, timedelta
from decimal import Decimal

from ledger.errors import PersistenceFailure
from models import Transaction, UserPlan

BOUGHT = datetime(2026, 6, 1, 12, 0, 0)


def _subscribe(services, make_user, make_plan, balance="1000.00", **plan_fields):
    user = make_user(balance=balance)
    plan = make_plan(**plan_fields)
    user_plan, _ = services.plans.purchase_plan(user.id, plan.id, now=BOUGHT)
    return user.id, user_plan.id


def test_pays_each_active_plan_once_per_day(services, make_user, make_plan):
    user_id, user_plan_id = _subscribe(services, make_user, make_plan, price="600.00", daily_income="60.00")
    run_at = BOUGHT + timedelta(days=1)

    first = services.settlement.run(now=run_at)
    second = services.settlement.run(now=run_at + timedelta(hours=3))

    assert (first.processed, first.already_paid, first.errors) == (1, 0, 0)
    assert (second.processed, second.already_paid, second.errors) == (0, 1, 0)
    assert first.total_payout == Decimal("60.00")
    assert services.store.get_user(user_id).balance == Decimal("460.00")

    payout = Transaction.query.filter_by(type="daily_income").one()
    assert payout.reference_id == user_plan_id
    assert payout.settlement_date == run_at.date()
    assert payout.balance_before == Decimal("400.00")
    assert payout.balance_after == Decimal("460.00")


def test_pays_again_on_the_next_day(services, make_user, make_plan):
    user_id, _ = _subscribe(services, make_user, make_plan, price="600.00", daily_income="60.00")

    services.settlement.run(now=BOUGHT + timedelta(days=1))
    services.settlement.run(now=BOUGHT + timedelta(days=2))

    assert services.store.get_user(user_id).balance == Decimal("520.00")


def test_plan_past_end_date_is_expired_not_paid(services, make_user, make_plan):
    user_id, user_plan_id = _subscribe(services, make_user, make_plan, price="600.00",
                                       daily_income="60.00", duration_days=1)

    result = services.settlement.run(now=BOUGHT + timedelta(days=2))

    assert (result.processed, result.expired) == (0, 1)
    assert services.store.session.get(UserPlan, user_plan_id).status == "expired"
    assert services.store.get_user(user_id).balance == Decimal("400.00")
    assert Transaction.query.filter_by(type="daily_income").count() == 0

    # expired plans are no longer candidates
    assert services.settlement.run(now=BOUGHT + timedelta(days=3)).expired == 0


def test_concurrent_duplicate_counts_as_already_paid(services, make_user, make_plan, monkeypatch):
    user_id, _ = _subscribe(services, make_user, make_plan, price="600.00", daily_income="60.00")
    run_at = BOUGHT + timedelta(days=1)
    services.settlement.run(now=run_at)

    # a second run that missed the paid check still cannot pay twice
    monkeypatch.setattr(services.store, "daily_income_paid", lambda *args: False)
    result = services.settlement.run(now=run_at)

    assert (result.processed, result.already_paid, result.errors) == (0, 1, 0)
    assert services.store.get_user(user_id).balance == Decimal("460.00")
    assert Transaction.query.filter_by(type="daily_income").count() == 1


def test_one_failing_plan_does_not_stop_the_run(services, make_user, make_plan, monkeypatch):
    bad_user, bad_plan = _subscribe(services, make_user, make_plan, price="600.00", daily_income="60.00")
    good_user, _ = _subscribe(services, make_user, make_plan, price="100.00", daily_income="10.00")

    credit = services.ledger.credit_balance

    def flaky_credit(user_id, amount, tx_type, description, reference_id=None, **kwargs):
        if reference_id == bad_plan:
            raise PersistenceFailure("Failed to update balance")
        return credit(user_id, amount, tx_type, description, reference_id=reference_id, **kwargs)

    monkeypatch.setattr(services.ledger, "credit_balance", flaky_credit)
    result = services.settlement.run(now=BOUGHT + timedelta(days=1))

    assert (result.processed, result.errors) == (1, 1)
    assert not result.ok
    assert services.store.get_user(bad_user).balance == Decimal("400.00")
    assert services.store.get_user(good_user).balance == Decimal("910.00")

    # re-running after the fault pays only the plan that was missed
    monkeypatch.undo()
    rerun = services.settlement.run(now=BOUGHT + timedelta(days=1, hours=1))
    assert (rerun.processed, rerun.already_paid) == (1, 1)
    assert services.store.get_user(bad_user).balance == Decimal("460.00")


def test_no_active_plans(services):
    result = services.settlement.run(now=BOUGHT)
    assert result.to_dict() == {
        "settlementDate": "2026-06-01",
        "processed": 0,
        "alreadyPaid": 0,
        "expired": 0,
        "errors": 0,
        "totalPayout": 0.0,
    }
