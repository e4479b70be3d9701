"""Shared fixtures: in-memory SQLite store, fixed clocks, and seed helpers."""

import os

os.environ.setdefault("POSTGRES_DSN", "sqlite://")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("TRACING_ENABLED", "false")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tutorhub.common.db import Base, make_session_factory  # noqa: E402
from tutorhub.services.parent_calls.models import Enrollment, SiteSetting  # noqa: E402
from tutorhub.services.payments.models import Payment  # noqa: E402


WEBHOOK_SECRET = "test-webhook-secret"


class FixedClock:
    """Callable clock whose current instant tests can move."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def clock():
    return FixedClock(datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def seed_payment(session_factory):
    """Insert a `created` payment row the way order placement would."""

    def _seed(gateway_id: str = "pay_1", amount: int = 499900, status: str = "created") -> None:
        with session_factory() as db:
            db.add(Payment(razorpay_payment_id=gateway_id, amount=amount, currency="INR", status=status))
            db.commit()

    return _seed


@pytest.fixture()
def seed_enrollment(session_factory):
    def _seed(enrollment_id: str = "enr_1") -> str:
        with session_factory() as db:
            db.add(Enrollment(enrollment_id=enrollment_id, child_id="child_1", coach_id="coach_1"))
            db.commit()
        return enrollment_id

    return _seed


@pytest.fixture()
def set_call_max(session_factory):
    """Write `parent_call_max_per_month` into the settings store."""

    def _set(value) -> None:
        with session_factory() as db:
            setting = db.get(SiteSetting, "parent_call_max_per_month")
            if setting is None:
                db.add(SiteSetting(key="parent_call_max_per_month", value=value))
            else:
                setting.value = value
            db.commit()

    return _set
