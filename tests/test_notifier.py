"""Notification dispatcher tests (queue, persistence, Redis fan-out)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from src.domain.entities import Notification
from src.domain.enums import NotificationType
from src.infrastructure.redis_client import user_channel
from src.infrastructure.repositories import NotificationRepository
from src.workers.notifier import NotificationDispatcher


def _note(user_id="uid-driver", type_=NotificationType.NEW_REQUEST):
    return Notification(user_id=user_id, ride_id=None, message="hello", type=type_)


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_drain_persists_and_publishes(self, dispatcher, fake_redis, session_factory):
        assert dispatcher.publish([_note(), _note("uid-passenger")]) == 2
        assert dispatcher.pending == 2

        assert await dispatcher.drain() == 2
        assert dispatcher.pending == 0

        async with session_factory() as session:
            rows = await NotificationRepository(session).get_for_user("uid-driver")
        assert [r.message for r in rows] == ["hello"]
        assert rows[0].type == NotificationType.NEW_REQUEST
        assert not rows[0].is_read

        assert fake_redis.publish.await_count == 2
        channel, payload = fake_redis.publish.await_args_list[0].args
        assert channel == user_channel("uid-driver")
        assert json.loads(payload)["type"] == "new_request"

    @pytest.mark.asyncio
    async def test_drain_empty_queue(self, dispatcher, fake_redis):
        assert await dispatcher.drain() == 0
        fake_redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_failure_is_swallowed(self, dispatcher, fake_redis, session_factory):
        fake_redis.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        dispatcher.publish([_note()])

        await dispatcher.drain()

        async with session_factory() as session:
            rows = await NotificationRepository(session).get_for_user("uid-driver")
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_store_failure_still_publishes(self, fake_redis):
        def _broken_factory():
            raise RuntimeError("database unavailable")

        async def _redis():
            return fake_redis

        dispatcher = NotificationDispatcher(session_factory=_broken_factory, redis_factory=_redis)
        dispatcher.publish([_note()])

        await dispatcher.drain()

        fake_redis.publish.assert_awaited_once()

    def test_queue_full_drops_overflow(self, session_factory):
        dispatcher = NotificationDispatcher(session_factory=session_factory, maxsize=2)
        accepted = dispatcher.publish([_note(), _note(), _note()])
        assert accepted == 2
        assert dispatcher.pending == 2


class TestNotificationRepository:
    @pytest.mark.asyncio
    async def test_mark_read_only_for_owner(self, session_factory):
        async with session_factory() as session:
            await NotificationRepository(session).add_all([_note()])
            await session.commit()

        async with session_factory() as session:
            repo = NotificationRepository(session)
            [row] = await repo.get_for_user("uid-driver")
            assert await repo.mark_read("uid-passenger", row.id) is False
            assert await repo.mark_read("uid-driver", row.id) is True
            await session.commit()

        async with session_factory() as session:
            unread = await NotificationRepository(session).get_for_user(
                "uid-driver", unread_only=True
            )
        assert unread == []
