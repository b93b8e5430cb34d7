"""
Trip dispatch pipeline
======================

request -> one hazard snapshot -> route estimate -> trip record ->
match -> commit, retrying the match when a commit loses a race or times
out.  A request that finds no driver stays ``pending`` ("still
searching"); the caller decides how often to call ``dispatch`` again.

Cancellation at any stage cancels the trip and hands back any driver it
holds.  Collaborator failures (``TransientIOError``) propagate so the
caller can back off and retry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from rescue_dispatch.domain.entities import HazardZone, RouteEstimate, Trip, TripRequest
from rescue_dispatch.domain.enums import TripStatus
from rescue_dispatch.domain.errors import NotFoundError
from rescue_dispatch.domain.estimator import RouteEstimator
from rescue_dispatch.domain.matching import DriverMatcher, MatchResult
from rescue_dispatch.domain.pricing import PricingEngine
from rescue_dispatch.domain.protocols import (
    AssignmentPublisher,
    DispatchStore,
    HazardSupply,
)
from rescue_dispatch.domain.routing import planner_from_settings
from .coordinator import DispatchCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    trip: Trip
    match: Optional[MatchResult] = None
    attempts: int = 0

    @property
    def assigned(self) -> bool:
        return self.trip.status == TripStatus.ACCEPTED and self.trip.driver_id is not None


class DispatchService:
    def __init__(
        self,
        store: DispatchStore,
        coordinator: DispatchCoordinator,
        estimator: Optional[RouteEstimator] = None,
        matcher: Optional[DriverMatcher] = None,
        hazards: Optional[HazardSupply] = None,
        max_attempts: int = 3,
    ):
        self.store = store
        self.coordinator = coordinator
        self.estimator = estimator or RouteEstimator()
        self.matcher = matcher or DriverMatcher()
        self.hazards = hazards or store
        self.max_attempts = max(1, max_attempts)

    @classmethod
    def from_settings(
        cls,
        store: DispatchStore,
        publisher: AssignmentPublisher,
        settings,
        hazards: Optional[HazardSupply] = None,
    ) -> DispatchService:
        estimator = RouteEstimator(
            planner=planner_from_settings(settings),
            pricing=PricingEngine.from_settings(settings),
            average_speed_kmh=settings.average_speed_kmh,
            min_severity=settings.route_min_severity,
        )
        return cls(
            store=store,
            coordinator=DispatchCoordinator(
                store, publisher, commit_timeout=settings.commit_timeout_seconds
            ),
            estimator=estimator,
            matcher=DriverMatcher.from_settings(settings),
            hazards=hazards,
            max_attempts=settings.dispatch_max_attempts,
        )

    async def snapshot(self) -> tuple[HazardZone, ...]:
        """Read the hazard snapshot used for the whole of one call."""
        return tuple(await self.hazards.active_hazards())

    async def estimate(self, request: TripRequest) -> RouteEstimate:
        return self.estimator.estimate(request, await self.snapshot())

    async def request_trip(
        self,
        request: TripRequest,
        *,
        rider_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> DispatchResult:
        if idempotency_key:
            existing = await self.store.get_by_idempotency_key(idempotency_key)
            if existing:
                return DispatchResult(existing)

        hazards = await self.snapshot()
        estimate = self.estimator.estimate(request, hazards)
        trip = await self.store.create_trip(
            request, estimate, rider_id=rider_id, idempotency_key=idempotency_key
        )
        logger.info(
            "Trip %d created (%s, %.2f km, safety %d)",
            trip.id, request.urgency.value, estimate.distance_km, estimate.safety_score,
        )
        return await self._dispatch(trip, hazards)

    async def dispatch(self, trip_id: int) -> DispatchResult:
        """Re-run matching for a trip that is still searching."""
        trip = await self._require_trip(trip_id)
        if trip.status != TripStatus.PENDING:
            return DispatchResult(trip)
        return await self._dispatch(trip, await self.snapshot())

    async def cancel(self, trip_id: int) -> Trip:
        trip = await self.coordinator.cancel(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        logger.info("Trip %d cancelled", trip_id)
        return trip

    async def _dispatch(
        self, trip: Trip, hazards: Sequence[HazardZone]
    ) -> DispatchResult:
        request = trip.request
        try:
            for attempt in range(1, self.max_attempts + 1):
                drivers = await self.store.available_drivers(near=request.pickup)
                match = self.matcher.select(request, drivers, hazards)
                if match is None:
                    logger.info(
                        "No driver for trip %d among %d candidates", trip.id, len(drivers)
                    )
                    return DispatchResult(trip, attempts=attempt)

                outcome = await self.coordinator.commit(
                    trip.id, match, request, trip.estimated_fare
                )
                if outcome.succeeded:
                    return DispatchResult(outcome.trip, match, attempt)
                logger.info(
                    "Attempt %d for trip %d ended %s; re-matching",
                    attempt, trip.id, outcome.status.value,
                )
        except asyncio.CancelledError:
            await self.coordinator.abandon(trip.id)
            raise

        latest = await self.store.get_trip(trip.id)
        return DispatchResult(latest or trip, attempts=self.max_attempts)

    async def _require_trip(self, trip_id: int) -> Trip:
        trip = await self.store.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip
