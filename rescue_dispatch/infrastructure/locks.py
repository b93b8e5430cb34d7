"""
Redis lease lock for cross-process worker coordination.

The hazard refresher takes ``lock:hazard_sync`` before deactivating stale
zones, so with several API processes running only one of them writes per
cycle.  The lease expires on its own (``ttl_seconds``) if the holder dies.

* acquire  -- ``SET key token NX EX ttl``
* release  -- Lua compare-and-delete, so an expired holder never deletes a
  lease that another process has since taken.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

LOCK_PREFIX = "lock:"

_COMPARE_AND_DELETE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockNotAcquired(RuntimeError):
    """Another process holds the lease."""


class DistributedLock:
    def __init__(self, client: aioredis.Redis, name: str, ttl_seconds: int = 30):
        self.redis = client
        self.key = LOCK_PREFIX + name
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.owned = False

    async def acquire(self) -> bool:
        self.owned = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.owned

    async def release(self) -> bool:
        """Drop the lease if this instance still holds it.

        Returns False without touching Redis when the lease was never taken.
        """
        if not self.owned:
            return False
        self.owned = False
        deleted = await self.redis.eval(_COMPARE_AND_DELETE, 1, self.key, self.token)
        return bool(deleted)

    async def __aenter__(self) -> DistributedLock:
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()
