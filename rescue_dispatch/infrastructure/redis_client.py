"""Process-wide Redis client shared by the assignment publisher and the worker lock."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis

from rescue_dispatch.config import settings

_client: Optional[aioredis.Redis] = None


def get_redis() -> aioredis.Redis:
    """Return the shared client, creating it (and its pool) on first use."""
    global _client
    if _client is None:
        _client = aioredis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
