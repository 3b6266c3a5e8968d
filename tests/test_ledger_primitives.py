from datetime import date
from decimal import Decimal

import pytest

from ledger.errors import InsufficientFunds, NotFound, PersistenceFailure, ValidationError
from models import Transaction, TransactionType


def test_credit_records_balance_snapshot(services, make_user):
    user = make_user(balance="100.00")

    entry = services.ledger.credit_balance(user.id, "50.5", TransactionType.RECHARGE, "top-up")
    services.store.commit()

    assert services.store.get_user(user.id).balance == Decimal("150.50")
    assert entry.type == "recharge"
    assert entry.amount == Decimal("50.50")
    assert entry.balance_before == Decimal("100.00")
    assert entry.balance_after == Decimal("150.50")


def test_debit_records_balance_snapshot(services, make_user):
    user = make_user(balance="100.00")

    entry = services.ledger.debit_balance(user.id, "40", TransactionType.WITHDRAWAL, "payout")
    services.store.commit()

    assert services.store.get_user(user.id).balance == Decimal("60.00")
    assert entry.balance_after == entry.balance_before - entry.amount


def test_debit_more_than_balance_changes_nothing(services, make_user):
    user = make_user(balance="10.00")

    with pytest.raises(InsufficientFunds):
        services.ledger.debit_balance(user.id, "10.01", TransactionType.WITHDRAWAL, "payout")
    services.store.rollback()

    assert services.store.get_user(user.id).balance == Decimal("10.00")
    assert Transaction.query.count() == 0


@pytest.mark.parametrize("amount", [0, "-5", None, "abc", True, "NaN"])
def test_rejects_non_positive_or_malformed_amounts(services, make_user, amount):
    user = make_user(balance="10.00")
    with pytest.raises(ValidationError):
        services.ledger.credit_balance(user.id, amount, TransactionType.RECHARGE, "bad")


def test_amounts_round_half_up_to_cents(services, make_user):
    user = make_user()
    entry = services.ledger.credit_balance(user.id, "0.005", TransactionType.RECHARGE, "round")
    assert entry.amount == Decimal("0.01")


def test_direction_must_match_transaction_type(services, make_user):
    user = make_user(balance="10.00")
    with pytest.raises(ValueError):
        services.ledger.credit_balance(user.id, "1", TransactionType.WITHDRAWAL, "wrong way")
    with pytest.raises(ValueError):
        services.ledger.debit_balance(user.id, "1", TransactionType.DAILY_INCOME, "wrong way")


def test_unknown_user(services):
    with pytest.raises(NotFound):
        services.ledger.credit_balance("missing", "1", TransactionType.RECHARGE, "nobody")


def test_failed_audit_write_rolls_back_balance(services, make_user):
    user = make_user(balance="0.00")
    day = date(2026, 1, 10)
    services.ledger.credit_balance(user.id, "60", TransactionType.DAILY_INCOME, "day 1",
                                   reference_id="plan-1", settlement_date=day)
    services.store.commit()

    with pytest.raises(PersistenceFailure) as exc:
        services.ledger.credit_balance(user.id, "60", TransactionType.DAILY_INCOME, "day 1 again",
                                       reference_id="plan-1", settlement_date=day)
    assert exc.value.details.get("conflict") is True
    services.store.rollback()

    assert services.store.get_user(user.id).balance == Decimal("60.00")
    assert Transaction.query.count() == 1


def test_transactions_for_user_filters_by_type(services, make_user):
    user = make_user(balance="100.00")
    services.ledger.credit_balance(user.id, "5", TransactionType.RECHARGE, "a")
    services.ledger.debit_balance(user.id, "3", TransactionType.WITHDRAWAL, "b")
    services.store.commit()

    recharges = services.store.transactions_for_user(user.id, tx_type="recharge")
    assert [t.amount for t in recharges] == [Decimal("5.00")]
    assert len(services.store.transactions_for_user(user.id)) == 2
