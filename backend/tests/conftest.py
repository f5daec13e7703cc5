"""
Pytest fixtures for test database, client, ledger and authentication.

Each test gets its own file-backed SQLite database (set TEST_DATABASE_URL to
run against PostgreSQL instead). The app's session factory and seat ledger
are swapped through dependency overrides, so every request opens its own
session, as in production.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from booking_api.main import app
from booking_api.api.deps import get_ledger
from booking_api.db.base import Base
from booking_api.db.session import SQLITE_BUSY_TIMEOUT, enable_sqlite_write_locks, get_session_factory
from booking_api.core.security import create_access_token, hash_password
from booking_api.models.user import User, UserRole
from booking_api.models.event import Event
from booking_api.models.booking import Booking
from booking_api.services.seat_ledger import SeatLedger


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, yield a session factory, then drop tables for isolation."""
    connect_args = {"timeout": SQLITE_BUSY_TIMEOUT} if database_url.startswith("sqlite") else {}
    engine = enable_sqlite_write_locks(
        create_async_engine(database_url, echo=False, poolclass=NullPool, connect_args=connect_args)
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def ledger(session_factory) -> SeatLedger:
    return SeatLedger(session_factory)


@pytest_asyncio.fixture
async def client(session_factory, ledger) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and ledger."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_ledger] = lambda: ledger

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    session: AsyncSession,
    email: str,
    role: UserRole = UserRole.USER,
    password: str = "testpassword123",
) -> User:
    user = User(
        first_name="Test",
        last_name="User",
        email=email,
        hashed_password=hash_password(password),
        role=role.value,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_event(
    session: AsyncSession,
    creator: User,
    starts_in: timedelta = timedelta(days=30),
    total_seats: int = 100,
    available_seats: int | None = None,
    price: str = "20.00",
    **fields,
) -> Event:
    event = Event(
        title=fields.pop("title", "Test Concert"),
        description=fields.pop("description", "A test event with live music"),
        date=datetime.now(timezone.utc) + starts_in,
        location=fields.pop("location", "Test Venue Hall"),
        total_seats=total_seats,
        available_seats=total_seats if available_seats is None else available_seats,
        price=Decimal(price),
        creator_id=creator.id,
        **fields,
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


def bearer(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return bearer(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, admin_user: User) -> Event:
    """An event 30 days out with 100 seats at 20.00."""
    return await make_event(db_session, admin_user)


@pytest_asyncio.fixture
async def small_event(db_session: AsyncSession, admin_user: User) -> Event:
    """10 seats at 20.00, 30 days out."""
    return await make_event(db_session, admin_user, total_seats=10, title="Small Room Gig")


@pytest_asyncio.fixture
async def sold_out_event(db_session: AsyncSession, admin_user: User) -> Event:
    return await make_event(
        db_session, admin_user, total_seats=50, available_seats=0, title="Sold Out Show"
    )


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _make(email: str, role: UserRole = UserRole.USER) -> User:
        return await make_user(db_session, email, role=role)
    return _make


@pytest.fixture
def event_factory(db_session: AsyncSession, admin_user: User):
    async def _make(**kwargs) -> Event:
        return await make_event(db_session, admin_user, **kwargs)
    return _make


@pytest.fixture
def headers_for():
    return bearer


@pytest.fixture
def load_event(session_factory):
    """Read an event through a fresh session, never from an identity map."""
    async def _load(event_id: int) -> Event:
        async with session_factory() as session:
            return await session.get(Event, event_id)
    return _load


@pytest.fixture
def load_booking(session_factory):
    async def _load(booking_id: int) -> Booking:
        async with session_factory() as session:
            return await session.get(Booking, booking_id)
    return _load


@pytest.fixture
def load_user(session_factory):
    async def _load(user_id: int) -> User:
        async with session_factory() as session:
            return await session.get(User, user_id)
    return _load
