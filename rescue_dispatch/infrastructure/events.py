"""
Assignment notification channel.

The coordinator writes ``AssignmentEvent``s to an ``AssignmentPublisher``;
how they reach the driver's client (WebSocket fan-out, push) is the
transport's concern.  Delivery guarantees belong to the channel.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis

from rescue_dispatch.domain.events import (
    CHANNEL_TRIP_ASSIGNMENTS,
    AssignmentEvent,
    driver_channel,
)

logger = logging.getLogger(__name__)


class RedisAssignmentPublisher:
    """Publishes JSON on the driver's channel and on the shared feed."""

    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def publish(self, event: AssignmentEvent) -> None:
        payload = event.model_dump_json()
        receivers = await self.redis.publish(driver_channel(event.driver_id), payload)
        await self.redis.publish(CHANNEL_TRIP_ASSIGNMENTS, payload)
        logger.debug(
            "Published trip %d to driver %d (%d receivers)",
            event.trip_id, event.driver_id, receivers,
        )


class InMemoryAssignmentPublisher:
    """Collects events in a list; used by tests and single-process runs."""

    def __init__(self):
        self.events: list[AssignmentEvent] = []

    async def publish(self, event: AssignmentEvent) -> None:
        self.events.append(event)
