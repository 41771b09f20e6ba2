"""
Redis pub/sub for notification fan-out.

Clients subscribe to ``<prefix>:<user_id>``; the notification dispatcher
publishes one JSON document per notification.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as aioredis

from src.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


def user_channel(user_id: str) -> str:
    return f"{settings.notification_channel_prefix}:{user_id}"


async def publish_json(
    client: aioredis.Redis, channel: str, payload: dict[str, Any]
) -> int:
    """Publish *payload* and return the number of subscribers reached."""
    return await client.publish(channel, json.dumps(payload, default=str))


async def close_redis() -> None:
    await _pool.disconnect()
