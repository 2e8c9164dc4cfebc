"""Test configuration and fixtures."""

import os
from datetime import datetime
from decimal import Decimal

# Settings are read at import time; point them at SQLite before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_WORKERS", "false")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from busbooking.core.database import Base  # noqa: E402
from busbooking.core.dependencies import get_db  # noqa: E402
from busbooking.models import *  # noqa: E402,F403 - Import all models
from busbooking.models import Bus, BusFare  # noqa: E402
from busbooking.schemas.trip import TripKey  # noqa: E402
from helpers import DEPARTURE_TIME, OPERATOR_ID, TRIP_DATE, FrozenClock  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
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


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def clock():
    """Clock frozen at a fixed instant; advance it to expire locks."""
    return FrozenClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest_asyncio.fixture(scope="function")
async def bus(test_session):
    """A 40-seat bus: base price 1000, 10% fee, Colombo to Kandy fare 1200."""
    bus = Bus(
        name="Kandy Express",
        route_from="Colombo",
        route_to="Kandy",
        operator_id=OPERATOR_ID,
        seat_layout=[str(number) for number in range(1, 41)],
        price=Decimal("1000.00"),
        fee_type="percentage",
        fee_value=Decimal("10"),
        fares=[BusFare(boarding_point="Colombo", dropping_point="Kandy", price=Decimal("1200.00"))],
    )
    test_session.add(bus)
    await test_session.commit()
    return bus


@pytest.fixture
def trip(bus):
    """The trip every test books against."""
    return TripKey(bus_id=bus.id, date=TRIP_DATE, departure_time=DEPARTURE_TIME)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create the application with its database dependency pointed at the test session."""
    from busbooking.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
