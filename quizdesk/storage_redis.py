from typing import Optional

import redis.asyncio as redis

from quizdesk.config import settings

_redis: Optional[redis.Redis] = None


async def _conn() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def close() -> None:
    """Close the cached Redis client (if initialized)."""

    global _redis
    if _redis is None:
        return

    await _redis.aclose()
    _redis = None


async def timer_get(key: str) -> int | None:
    client = await _conn()
    raw = await client.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


async def timer_set(key: str, started_ms: int) -> None:
    client = await _conn()
    await client.set(key, str(int(started_ms)))


async def timer_delete(key: str) -> None:
    client = await _conn()
    await client.delete(key)
