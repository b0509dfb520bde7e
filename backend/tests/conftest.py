"""Shared test fixtures for all test modules."""

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import eventplan.models  # noqa: F401
from eventplan.core import database as db_module
from eventplan.core.auth import create_access_token
from eventplan.core.database import Base, get_db
from eventplan.models.account import Account, AccountRole
from eventplan.models.event import Event
from eventplan.models.payment import Payment, PaymentMethod
from eventplan.models.subscription import (
    ActivationIntent,
    Subscription,
    SubscriptionPaymentStatus,
)
from eventplan.repositories.event_repository import EventRepository
from eventplan.repositories.payment_repository import PaymentRepository
from eventplan.services.entitlement_service import entitlement_cache
from eventplan.services.plan_catalog import get_plan

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

SUCCESS_NUMBER = "46733123450"
FAILURE_NUMBER = "46733123451"
TIMEOUT_NUMBER = "46733123452"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data and cached entitlements
    after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)
    entitlement_cache.clear()

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()
    entitlement_cache.clear()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


def make_account(
    db: Session,
    email: str,
    role: AccountRole = AccountRole.USER,
    **kwargs,
) -> Account:
    account = Account(email=email, name=email.split("@")[0], role=role.value, **kwargs)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def make_event(db: Session, owner: Account, name: str = "Mariage") -> Event:
    return EventRepository(db).create(owner_id=owner.id, name=name)  # type: ignore[arg-type]


def make_subscription(
    db: Session,
    account: Account,
    event: Event | None,
    plan_code: str = "starter",
    payment_status: SubscriptionPaymentStatus = SubscriptionPaymentStatus.PAID,
    expires_at: datetime | None = None,
) -> Subscription:
    plan = get_plan(plan_code)
    subscription = Subscription(
        account_id=account.id,
        event_id=event.id if event else None,
        plan_type=plan.code,
        features=dict(plan.features),
        limits=dict(plan.limits),
        payment_status=payment_status.value,
        expires_at=expires_at or datetime.now(UTC) + timedelta(days=30),
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


def auth_headers(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.id)}"}


@pytest.fixture
def owner(db_session: Session) -> Account:
    return make_account(db_session, "owner@example.com")


@pytest.fixture
def collaborator(db_session: Session) -> Account:
    return make_account(db_session, "collab@example.com")


@pytest.fixture
def admin(db_session: Session) -> Account:
    return make_account(db_session, "admin@example.com", role=AccountRole.ADMIN)


@pytest.fixture
def event(db_session: Session, owner: Account) -> Event:
    return make_event(db_session, owner)


def make_payment(
    db: Session,
    account: Account,
    event: Event,
    plan_code: str = "starter",
    intent: ActivationIntent = ActivationIntent.NEW_SUBSCRIBE,
    completed: bool = True,
) -> Payment:
    repo = PaymentRepository(db)
    payment = repo.create(
        account_id=account.id,
        amount=get_plan(plan_code).price,
        currency="XAF",
        method=PaymentMethod.MTN_MOBILE_MONEY,
        phone_number="061234567",
        event_id=event.id,
        plan_type=plan_code,
        intent=intent.value,
    )
    if completed:
        repo.mark_completed(payment.id)
        db.refresh(payment)
    return payment


class FakeTime:
    """Virtual clock; sleeping advances it instantly."""

    def __init__(self):
        self.now = 0.0

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)
