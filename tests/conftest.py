"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created as-is;
``StaticPool`` keeps the single in-memory connection alive across sessions.
Redis is replaced by an ``AsyncMock`` that records ``publish`` calls.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.infrastructure.database import Base
from src.services.chat import ChatService
from src.services.ride_lifecycle import RideLifecycleManager
from src.workers.notifier import NotificationDispatcher

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

DRIVER = "uid-driver"
PASSENGER = "uid-passenger"
OTHER = "uid-other"
STRANGER = "uid-stranger"

RIDE_DETAILS = {
    "from_location": "Hostel Block A",
    "to_location": "Central Library",
    "shared_cost": 40.0,
}


class RecordingPublisher:
    """Collects everything the lifecycle manager publishes."""

    def __init__(self):
        self.published = []

    def publish(self, notifications):
        batch = list(notifications)
        self.published.extend(batch)
        return len(batch)

    def for_user(self, user_id):
        return [n for n in self.published if n.user_id == user_id]

    def clear(self):
        self.published.clear()


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Services ──────────────────────────────────────────────────────────


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def manager(session_factory, publisher):
    return RideLifecycleManager(session_factory, publisher)


@pytest.fixture
def chat_service(session_factory):
    return ChatService(session_factory)


@pytest.fixture
def fake_redis():
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def dispatcher(session_factory, fake_redis):
    async def _redis():
        return fake_redis

    return NotificationDispatcher(session_factory=session_factory, redis_factory=_redis)


# ── HTTP client ───────────────────────────────────────────────────────


@pytest.fixture
def suggestion_client():
    return AsyncMock()


@pytest_asyncio.fixture
async def client(session_factory, dispatcher, suggestion_client):
    """AsyncClient wired to the SQLite store and an in-process dispatcher."""
    from src.api.app import create_app
    from src.api.dependencies import (
        get_chat_service,
        get_db,
        get_lifecycle_manager,
        get_suggestion_client,
    )
    from src.api.middleware import limiter

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    with (
        patch("src.workers.notifier.start_dispatcher", new_callable=AsyncMock),
        patch("src.workers.notifier.stop_dispatcher", new_callable=AsyncMock),
        patch("src.infrastructure.redis_client.close_redis", new_callable=AsyncMock),
    ):
        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_lifecycle_manager] = lambda: RideLifecycleManager(
            session_factory, dispatcher
        )
        app.dependency_overrides[get_chat_service] = lambda: ChatService(session_factory)
        app.dependency_overrides[get_suggestion_client] = lambda: suggestion_client

        was_enabled = limiter.enabled
        limiter.enabled = False
        try:
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                yield ac
        finally:
            limiter.enabled = was_enabled
