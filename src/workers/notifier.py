"""
Background Notification Dispatcher
==================================

Lifecycle operations commit their state first and only then hand the
resulting notifications to ``NotificationDispatcher.publish``, which never
blocks and never raises.  A background task drains the queue every
``NOTIFICATION_FLUSH_INTERVAL_SECONDS``:

1. Persist the batch to the ``notifications`` table (own session).
2. Publish each notification on the Redis channel
   ``<prefix>:<user_id>`` for connected clients.

Either step may fail independently; failures are logged and the batch is
dropped.  Ride state is never rolled back because of a notification.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from src.config import settings
from src.domain.entities import Notification
from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis, publish_json, user_channel
from src.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        session_factory=async_session_factory,
        redis_factory=get_redis,
        maxsize: int = settings.notification_queue_size,
    ):
        self._session_factory = session_factory
        self._redis_factory = redis_factory
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=maxsize)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, notifications: Iterable[Notification]) -> int:
        """Enqueue notifications.  Returns how many were accepted."""
        queued = 0
        for notification in notifications:
            try:
                self._queue.put_nowait(notification)
                queued += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Notification queue full, dropping %s for user %s",
                    notification.type.value,
                    notification.user_id,
                )
        return queued

    async def drain(self) -> int:
        """Deliver everything queued so far.  Returns the batch size."""
        batch: list[Notification] = []
        while not self._queue.empty():
            batch.append(self._queue.get_nowait())
        if batch:
            await self.deliver(batch)
        return len(batch)

    async def deliver(self, batch: list[Notification]) -> None:
        try:
            async with self._session_factory() as session:
                await NotificationRepository(session).add_all(batch)
                await session.commit()
        except Exception:
            logger.exception("Failed to persist %d notifications", len(batch))

        try:
            redis = await self._redis_factory()
            for n in batch:
                await publish_json(
                    redis,
                    user_channel(n.user_id),
                    {
                        "user_id": n.user_id,
                        "ride_id": n.ride_id,
                        "type": n.type.value,
                        "message": n.message,
                    },
                )
        except Exception:
            logger.exception("Failed to publish %d notifications", len(batch))


_dispatcher: NotificationDispatcher | None = None
_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


async def start_dispatcher() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification dispatcher started (interval=%.1fs)",
        settings.notification_flush_interval_seconds,
    )


async def stop_dispatcher() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    # flush whatever was queued after the last cycle
    await get_dispatcher().drain()
    logger.info("Notification dispatcher stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: drain the queue then sleep."""
    assert _stop_event is not None
    dispatcher = get_dispatcher()
    while not _stop_event.is_set():
        try:
            await dispatcher.drain()
        except Exception:
            logger.exception("Unhandled error in notification dispatch")
        try:
            await asyncio.wait_for(
                _stop_event.wait(),
                timeout=settings.notification_flush_interval_seconds,
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle
