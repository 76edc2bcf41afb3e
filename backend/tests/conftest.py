"""
Centralized Test Configuration.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.identity import ActorContext
from backend.app.core.reliability import CircuitBreaker
from backend.app.models.enums import UserRole
from backend.app.models.box_type import BoxType
from backend.app.models.country import Country
from backend.app.models.user import User
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from backend.tests.factories import (
    ADMIN_ID, ALICE_ID, BOB_ID, CAROL_ID, RecordingSender, auth_headers
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply the database override once for the session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    app.dependency_overrides = {}

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
def notification_sender():
    return RecordingSender()

@pytest.fixture
def dispatcher(notification_sender):
    return NotificationDispatcher(
        notification_sender,
        breaker=CircuitBreaker(failure_threshold=3, reset_timeout=60),
    )

@pytest.fixture(autouse=True)
def override_dispatcher(dispatcher):
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    yield
    app.dependency_overrides.pop(get_notification_dispatcher, None)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def catalog_data(db_session):
    """
    Box types and countries used across tests.

    Basic 25.00 / Fragile 15.99; Sweden 1.000 (source), Germany 1.500,
    Japan 1.333. One inactive row of each.
    """
    basic = BoxType(name="Basic", size="30x20x10", base_cost=Decimal("25.00"))
    fragile = BoxType(name="Fragile", size="40x30x20", base_cost=Decimal("15.99"))
    retired = BoxType(name="Retired", size="10x10x10", base_cost=Decimal("5.00"), is_active=False)
    sweden = Country(name="Sweden", code="SE", multiplier=Decimal("1.000"), is_source_country=True)
    germany = Country(name="Germany", code="DE", multiplier=Decimal("1.500"))
    japan = Country(name="Japan", code="JP", multiplier=Decimal("1.333"))
    closed = Country(name="Atlantis", code="ATL", multiplier=Decimal("2.000"), is_active=False)

    db_session.add_all([basic, fragile, retired, sweden, germany, japan, closed])
    await db_session.commit()

    return SimpleNamespace(
        basic=basic, fragile=fragile, retired=retired,
        sweden=sweden, germany=germany, japan=japan, closed=closed,
    )


@pytest.fixture
async def users(db_session):
    """Stored profiles. The admin has none; Carol's is incomplete."""
    alice = User(
        id=ALICE_ID, email="alice@example.com", full_name="Alice Andersson", phone="+46701234567",
        address="Storgatan 1", city="Stockholm", postal_code="11122", country="Sweden",
    )
    bob = User(
        id=BOB_ID, email="bob@example.com", full_name="Bob Berg", phone="+46707654321",
        address="Kungsgatan 5", city="Gothenburg", postal_code="41119", country="Sweden",
    )
    carol = User(id=CAROL_ID, email="carol@example.com", full_name="Carol", phone=None)

    db_session.add_all([alice, bob, carol])
    await db_session.commit()
    return SimpleNamespace(alice=alice, bob=bob, carol=carol)


@pytest.fixture
def admin_actor():
    return ActorContext(user_id=ADMIN_ID, role=UserRole.ADMINISTRATOR, email="admin@example.com")

@pytest.fixture
def alice_actor():
    return ActorContext(user_id=ALICE_ID, role=UserRole.REGISTERED_USER, email="alice@example.com")

@pytest.fixture
def bob_actor():
    return ActorContext(user_id=BOB_ID, role=UserRole.REGISTERED_USER, email="bob@example.com")

@pytest.fixture
def carol_actor():
    return ActorContext(user_id=CAROL_ID, role=UserRole.REGISTERED_USER, email="carol@example.com")

@pytest.fixture
def guest_actor():
    return ActorContext.guest()

@pytest.fixture
def admin_headers():
    # Legacy lower-case role string, mapped by the identity adapter
    return auth_headers(ADMIN_ID, "admin", "admin@example.com")

@pytest.fixture
def alice_headers():
    return auth_headers(ALICE_ID, "customer", "alice@example.com")

@pytest.fixture
def bob_headers():
    return auth_headers(BOB_ID, "REGISTERED_USER", "bob@example.com")

