import os
import tempfile
from decimal import Decimal
from itertools import count

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FLASK_ENV", "testing")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "goldmine-test-logs"))

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from models import User, Plan

_mobiles = count(9000000001)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Keeps one app context (and so one session) open for service-level tests."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def services(app, ctx):
    return app.extensions["ledger"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    def _make_user(balance="0.00", role="user", password="secret123", name="Test User", mobile=None):
        user = User(
            name=name,
            mobile=mobile or str(next(_mobiles)),
            role=role,
            balance=Decimal(balance),
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_plan():
    def _make_plan(price="600.00", daily_income="60.00", duration_days=10,
                   total_return=None, is_active=True, name="Gold"):
        plan = Plan(
            name=name,
            price=Decimal(price),
            daily_income=Decimal(daily_income),
            duration_days=duration_days,
            total_return=Decimal(total_return or Decimal(daily_income) * duration_days),
            is_active=is_active,
        )
        db.session.add(plan)
        db.session.commit()
        return plan
    return _make_plan
