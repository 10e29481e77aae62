"""
Test configuration and fixtures.

This module sets up test environment and provides shared fixtures for all tests.
Every test gets a fresh in-memory SQLite database built from the ORM metadata.
"""

import os
from datetime import UTC, datetime, timedelta

import pytest

# Must be set BEFORE any imports of database.connection or shared.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-at-least-32-chars"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["TIMEZONE"] = "UTC"
os.environ["SWAP_RETRY_MAX_WAIT_SECONDS"] = "0.05"

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from database.models import Base, Booking, BookingStatus, ProviderPolicy  # noqa: E402
from shared.auth_context import ActorRole, AuthContext  # noqa: E402
from shared.clock import FrozenClock  # noqa: E402

PROVIDER_ID = "provider-1"
OTHER_PROVIDER_ID = "provider-2"
CONSUMER_X = "consumer-x"
CONSUMER_Y = "consumer-y"
CONSUMER_Z = "consumer-z"

# Sunday 1 March 2026, 09:00 UTC
NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
async def engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return FrozenClock(NOW)


@pytest.fixture
def provider_actor():
    return AuthContext(user_id="user-provider-1", role=ActorRole.PROVIDER, provider_id=PROVIDER_ID)


@pytest.fixture
def other_provider_actor():
    return AuthContext(user_id="user-provider-2", role=ActorRole.PROVIDER, provider_id=OTHER_PROVIDER_ID)


@pytest.fixture
def actor_x():
    return AuthContext(user_id="user-x", role=ActorRole.CONSUMER, consumer_ids=(CONSUMER_X,))


@pytest.fixture
def actor_y():
    return AuthContext(user_id="user-y", role=ActorRole.CONSUMER, consumer_ids=(CONSUMER_Y,))


@pytest.fixture
def actor_z():
    return AuthContext(user_id="user-z", role=ActorRole.CONSUMER, consumer_ids=(CONSUMER_Z,))


@pytest.fixture
def make_booking(session):
    """Factory persisting a booking; start defaults to 72 hours after NOW."""

    async def _make(
        consumer_id: str,
        start_time: datetime | None = None,
        provider_id: str = PROVIDER_ID,
        status: BookingStatus = BookingStatus.SCHEDULED,
        duration_minutes: int = 60,
        **fields,
    ) -> Booking:
        start_time = start_time or NOW + timedelta(hours=72)
        booking = Booking(
            consumer_id=consumer_id,
            provider_id=provider_id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=duration_minutes),
            status=status,
            **fields,
        )
        session.add(booking)
        await session.commit()
        return booking

    return _make


@pytest.fixture
def make_policy(session):
    """Factory persisting a provider policy (defaults overridden by keyword)."""

    async def _make(provider_id: str = PROVIDER_ID, **overrides) -> ProviderPolicy:
        policy = ProviderPolicy.defaults_for(provider_id)
        for field, value in overrides.items():
            setattr(policy, field, value)
        session.add(policy)
        await session.commit()
        return policy

    return _make


async def reload(session, model, object_id):
    """Fetch the persisted row, overwriting the identity-map copy (None once deleted)."""
    return await session.get(model, object_id, populate_existing=True)
