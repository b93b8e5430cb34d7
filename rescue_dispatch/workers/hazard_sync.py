"""
Background Hazard Refresher
===========================

Runs every ``HAZARD_REFRESH_INTERVAL_SECONDS`` (default 300 s).

Per cycle
---------
1. Under a Redis distributed lock (one instance at a time), mark zones
   whose ``last_updated`` is older than ``HAZARD_STALE_AFTER_HOURS`` as
   inactive.
2. Reload the active zones into the ``HazardSnapshotCache``.

Dispatch calls read the cache once per request and keep that tuple for
the whole call, so a refresh landing mid-request never changes what the
estimator and matcher see.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker

from rescue_dispatch.config import settings
from rescue_dispatch.domain.entities import HazardZone
from rescue_dispatch.domain.protocols import HazardSupply
from rescue_dispatch.infrastructure.database import async_session_factory
from rescue_dispatch.infrastructure.locks import DistributedLock
from rescue_dispatch.infrastructure.redis_client import get_redis
from rescue_dispatch.infrastructure.repositories import HazardRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


class HazardSnapshotCache:
    """Serves the last refreshed snapshot; loads on first use."""

    def __init__(self, source: HazardSupply):
        self.source = source
        self._snapshot: Optional[tuple[HazardZone, ...]] = None
        self.refreshed_at: Optional[datetime] = None

    async def refresh(self) -> tuple[HazardZone, ...]:
        zones = tuple(await self.source.active_hazards())
        self._snapshot = zones
        self.refreshed_at = datetime.now(timezone.utc)
        return zones

    async def active_hazards(self) -> tuple[HazardZone, ...]:
        if self._snapshot is None:
            return await self.refresh()
        return self._snapshot


# ── Public API ────────────────────────────────────────────────────────


async def start_sync_loop(cache: HazardSnapshotCache) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(cache))
    logger.info(
        "Hazard refresher started (interval=%ds)",
        settings.hazard_refresh_interval_seconds,
    )


async def stop_sync_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Hazard refresher stopped")


async def run_sync_cycle(
    cache: HazardSnapshotCache,
    session_factory: async_sessionmaker = async_session_factory,
    redis: Optional[aioredis.Redis] = None,
) -> int:
    """Expire stale zones, refresh the cache.  Returns zones deactivated.

    The reload runs even when Redis or the expiry write fails, so the
    snapshot keeps tracking the database while the lock is unavailable.
    """
    try:
        deactivated = await _expire_stale(session_factory, redis or get_redis())
    except Exception:
        logger.exception("Stale-zone expiry failed; refreshing snapshot anyway")
        deactivated = 0

    zones = await cache.refresh()
    logger.info(
        "Hazard refresh: %d active zones, %d deactivated", len(zones), deactivated
    )
    return deactivated


# ── Internals ─────────────────────────────────────────────────────────


async def _expire_stale(session_factory: async_sessionmaker, redis: aioredis.Redis) -> int:
    lock = DistributedLock(redis, "hazard_sync", ttl_seconds=60)
    if not await lock.acquire():
        logger.debug("Lock held by another worker, skipping expiry")
        return 0
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(
            hours=settings.hazard_stale_after_hours
        )
        async with session_factory() as session, session.begin():
            return await HazardRepository(session).deactivate_stale(cutoff)
    finally:
        await lock.release()


async def _loop(cache: HazardSnapshotCache) -> None:
    """Periodic loop: run a refresh cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_sync_cycle(cache)
        except Exception:
            logger.exception("Unhandled error in hazard refresh cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.hazard_refresh_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle
