"""Pytest fixtures for testing"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from rental_gateway.api.dependencies import get_dispatcher, get_gateway
from rental_gateway.api.main import create_app
from rental_gateway.domain.models import Actor, PropertyStatus, Role
from rental_gateway.infrastructure.clients.processor import ProcessorClient
from rental_gateway.infrastructure.database.models import AppUser, Base, Property
from rental_gateway.infrastructure.database.session import get_db, get_wallet_db
from rental_gateway.services.bookings import BookingLifecycle
from rental_gateway.services.gateway import PaymentGateway
from rental_gateway.services.notifications import InMemoryNotificationDispatcher
from rental_gateway.services.obligations import ObligationScheduler
from rental_gateway.services.wallet import WalletLedger


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_KEY_ID = "rzp_test_key"
TEST_KEY_SECRET = "test_secret"
ACTIVATION_DAY = date(2025, 1, 1)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and the booking-store session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def wallet_db(db: Session) -> Generator[Session, None, None]:
    """Separate session for the wallet ledger, as in production"""
    wallet_db = TestingSessionLocal()
    try:
        yield wallet_db
    finally:
        wallet_db.close()


@pytest.fixture
def owner(db: Session) -> AppUser:
    user = AppUser(id=uuid.uuid4(), full_name="Olivia Owner", role=Role.AGENT)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def tenant(db: Session) -> AppUser:
    user = AppUser(id=uuid.uuid4(), full_name="Tom Tenant", role=Role.USER)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_user(db: Session) -> AppUser:
    user = AppUser(id=uuid.uuid4(), full_name="Uma Unrelated", role=Role.USER)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def rental_property(db: Session, owner: AppUser) -> Property:
    prop = Property(id=uuid.uuid4(), owner_id=owner.id, title="Sea View Flat", status=PropertyStatus.FOR_RENT)
    db.add(prop)
    db.commit()
    return prop


@pytest.fixture
def owner_actor(owner: AppUser) -> Actor:
    return Actor(user_id=owner.id, role=Role.AGENT)


@pytest.fixture
def tenant_actor(tenant: AppUser) -> Actor:
    return Actor(user_id=tenant.id, role=Role.USER)


@pytest.fixture
def other_actor(other_user: AppUser) -> Actor:
    return Actor(user_id=other_user.id, role=Role.USER)


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), role=Role.ADMIN)


@pytest.fixture
def wallet(wallet_db: Session) -> WalletLedger:
    return WalletLedger(wallet_db)


@pytest.fixture
def funded_tenant(tenant: AppUser, wallet: WalletLedger) -> AppUser:
    """Tenant with 5000.00 in the wallet"""
    wallet.credit(tenant.id, Decimal("5000.00"), "Initial funding", f"seed:{tenant.id}")
    return tenant


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    return InMemoryNotificationDispatcher()


@pytest.fixture
def processor_client() -> AsyncMock:
    client = AsyncMock(spec=ProcessorClient)
    client.create_order.return_value = {
        "id": "order_test123",
        "amount": 120000,
        "currency": "INR",
        "receipt": "rent_receipt",
    }
    return client


@pytest.fixture
def gateway(processor_client: AsyncMock) -> PaymentGateway:
    return PaymentGateway(
        client=processor_client,
        key_id=TEST_KEY_ID,
        key_secret=TEST_KEY_SECRET,
        currency="INR",
        transaction_ceiling=Decimal("100000"),
    )


@pytest.fixture
def scheduler(
    db: Session,
    wallet: WalletLedger,
    dispatcher: InMemoryNotificationDispatcher,
    gateway: PaymentGateway,
) -> ObligationScheduler:
    return ObligationScheduler(db, wallet, dispatcher, gateway=gateway, today=lambda: ACTIVATION_DAY)


@pytest.fixture
def lifecycle(
    db: Session,
    wallet: WalletLedger,
    scheduler: ObligationScheduler,
    dispatcher: InMemoryNotificationDispatcher,
) -> BookingLifecycle:
    return BookingLifecycle(
        db,
        wallet,
        scheduler,
        dispatcher,
        today=lambda: ACTIVATION_DAY,
        open_ended_years=10,
        refund_deposit_on_reject=True,
    )


@pytest.fixture
def client(
    db: Session,
    wallet_db: Session,
    dispatcher: InMemoryNotificationDispatcher,
    gateway: PaymentGateway,
) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_wallet_db():
        try:
            yield wallet_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_wallet_db] = override_get_wallet_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_gateway] = lambda: gateway
    return TestClient(app)


@pytest.fixture
def headers_for():
    """Identity headers the upstream auth proxy would set"""

    def _headers(actor: Actor) -> dict:
        return {"X-User-Id": str(actor.user_id), "X-User-Role": actor.role.value}

    return _headers
