"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Redis and the EmailJS transport are replaced
by ``AsyncMock`` objects; the lock mock always grants the lock unless a
test says otherwise.
"""

from datetime import date
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fleetops.api.app import create_app
from fleetops.api.dependencies import get_db, get_notifier, get_redis
from fleetops.api.middleware import limiter
from fleetops.domain.enums import (
    DriverStatus,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetops.infrastructure.database import Base
from fleetops.infrastructure.models import TripModel, UserModel, VehicleModel
from fleetops.services.notifications import Notifier

TODAY = date.today()


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Collaborators ─────────────────────────────────────────────────────


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def email_client():
    client = AsyncMock()
    client.send = AsyncMock(return_value=True)
    return client


@pytest.fixture
def notifier(email_client):
    return Notifier(email_client)


@pytest.fixture
def recipients(email_client):
    """Recipients of every email attempted so far."""

    def _recipients() -> list[str]:
        return [call.args[0] for call in email_client.send.await_args_list]

    return _recipients


# ── Factories ─────────────────────────────────────────────────────────


@pytest.fixture
def make_user(session_factory):
    async def _make(name, email=None, role=UserRole.USER, **fields):
        email = email or f"{name.split()[0].lower()}@example.com"
        if role == UserRole.DRIVER:
            fields.setdefault("license_type", LicenseClass.B)
            fields.setdefault("status", DriverStatus.AVAILABLE)
        else:
            fields.setdefault("status", None)
        async with session_factory() as session:
            user = UserModel(name=name, email=email, role=role, **fields)
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_driver(make_user):
    async def _make(name, **fields):
        return await make_user(name, role=UserRole.DRIVER, **fields)

    return _make


@pytest.fixture
def make_vehicle(session_factory):
    async def _make(number, **fields):
        fields.setdefault("required_license", LicenseClass.B)
        fields.setdefault("status", VehicleStatus.AVAILABLE)
        fields.setdefault("seats", 4)
        fields.setdefault("initial_odometer", 0.0)
        fields.setdefault("last_service_mileage", 0.0)
        fields.setdefault("service_interval", 5000.0)
        async with session_factory() as session:
            vehicle = VehicleModel(number=number, **fields)
            session.add(vehicle)
            await session.commit()
            return vehicle

    return _make


@pytest.fixture
def make_trip(session_factory):
    async def _make(requester, serial, **fields):
        fields.setdefault("pickup", "Colombo Fort")
        fields.setdefault("destination", "Kandy")
        fields.setdefault("stops", [])
        fields.setdefault("date", TODAY)
        fields.setdefault("status", TripStatus.PENDING)
        fields.setdefault("passengers", 1)
        async with session_factory() as session:
            trip = TripModel(
                serial_number=serial,
                requester_id=requester.id,
                requester_name=requester.name,
                requester_email=requester.email,
                **fields,
            )
            session.add(trip)
            await session.commit()
            return trip

    return _make


# ── API client ────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, mock_redis, notifier):
    """AsyncClient backed by SQLite, a mocked Redis and a recording notifier."""

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_redis] = lambda: mock_redis
    app.dependency_overrides[get_notifier] = lambda: notifier
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
