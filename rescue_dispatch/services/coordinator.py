"""
Dispatch Commit Coordinator
===========================

Turns a ``MatchResult`` into a durable reservation:

* trip ``pending -> accepted`` with ``driver_id`` set, and the driver's
  ``is_available -> False``, as one atomic store operation;
* a lost race surfaces as ``CommitStatus.CONFLICT`` with nothing changed,
  and the caller re-runs matching;
* the store call is bounded by ``commit_timeout``; on timeout the release
  path runs and the outcome is ``TIMED_OUT``;
* if the awaiting task is cancelled before ``commit`` returns, the release
  path runs shielded from the cancellation, the trip is cancelled and the
  ``CancelledError`` is re-raised.

The release path only frees a driver that *this* trip holds, so it is
safe to run whether or not the reservation was applied.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from rescue_dispatch.domain.entities import InvalidStateTransition, Trip, TripRequest
from rescue_dispatch.domain.errors import ConflictError
from rescue_dispatch.domain.events import AssignmentEvent
from rescue_dispatch.domain.matching import MatchResult
from rescue_dispatch.domain.protocols import AssignmentPublisher, ReservationStore

logger = logging.getLogger(__name__)


class CommitStatus(str, enum.Enum):
    ACCEPTED = "accepted"
    CONFLICT = "conflict"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CommitOutcome:
    status: CommitStatus
    trip: Optional[Trip] = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == CommitStatus.ACCEPTED


class DispatchCoordinator:
    def __init__(
        self,
        store: ReservationStore,
        publisher: AssignmentPublisher,
        commit_timeout: float = 5.0,
    ):
        self.store = store
        self.publisher = publisher
        self.commit_timeout = commit_timeout

    async def commit(
        self,
        trip_id: int,
        match: MatchResult,
        request: TripRequest,
        estimated_fare: Optional[float] = None,
    ) -> CommitOutcome:
        driver_id = match.driver_id
        try:
            try:
                trip = await asyncio.wait_for(
                    self.store.reserve(trip_id, driver_id), timeout=self.commit_timeout
                )
            except ConflictError as exc:
                logger.info("Commit conflict for trip %d / driver %d: %s", trip_id, driver_id, exc)
                return CommitOutcome(CommitStatus.CONFLICT, detail=str(exc))
            except asyncio.TimeoutError:
                logger.warning(
                    "Commit for trip %d / driver %d timed out after %.1fs",
                    trip_id, driver_id, self.commit_timeout,
                )
                await self.release(trip_id, driver_id)
                return CommitOutcome(CommitStatus.TIMED_OUT, detail="commit timed out")

            await self._notify(trip_id, driver_id, request, estimated_fare)
            logger.info(
                "Trip %d assigned to driver %d (matched at v%d, %.2f km, safety %d)",
                trip_id, driver_id, match.driver_version, match.distance_km, match.safety,
            )
            return CommitOutcome(CommitStatus.ACCEPTED, trip=trip)
        except asyncio.CancelledError:
            logger.warning("Commit for trip %d cancelled; releasing driver %d", trip_id, driver_id)
            await self.release(trip_id, driver_id, cancel_trip=True)
            raise

    async def release(
        self, trip_id: int, driver_id: int, *, cancel_trip: bool = False
    ) -> bool:
        """Undo this trip's hold on the driver; survives caller cancellation."""
        released = await asyncio.shield(
            self.store.release(trip_id, driver_id, cancel_trip=cancel_trip)
        )
        if released:
            logger.info("Driver %d released from trip %d", driver_id, trip_id)
        return released

    async def cancel(self, trip_id: int) -> Optional[Trip]:
        """Cancel a non-terminal trip and hand its driver back."""
        return await asyncio.shield(self.store.cancel_trip(trip_id))

    async def abandon(self, trip_id: int) -> Optional[Trip]:
        """Like ``cancel`` but a no-op for trips that already ended."""
        try:
            return await self.cancel(trip_id)
        except InvalidStateTransition:
            return None

    async def _notify(
        self,
        trip_id: int,
        driver_id: int,
        request: TripRequest,
        estimated_fare: Optional[float],
    ) -> None:
        event = AssignmentEvent(
            trip_id=trip_id,
            driver_id=driver_id,
            pickup=request.pickup.as_tuple(),
            destination=request.destination.as_tuple(),
            urgency=request.urgency,
            estimated_fare=estimated_fare or 0.0,
        )
        try:
            await self.publisher.publish(event)
        except Exception:
            # Delivery is the channel's concern; the reservation stands.
            logger.exception("Failed to publish assignment for trip %d", trip_id)
