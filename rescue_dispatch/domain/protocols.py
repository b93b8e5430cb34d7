"""Ports to the collaborators the dispatch core reads from and writes to."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .entities import (
    Coordinate,
    DriverSnapshot,
    HazardZone,
    RouteEstimate,
    Trip,
    TripRequest,
)
from .events import AssignmentEvent


class HazardSupply(Protocol):
    async def active_hazards(self) -> Sequence[HazardZone]: ...


class DriverDirectory(Protocol):
    async def available_drivers(
        self, near: Optional[Coordinate] = None
    ) -> list[DriverSnapshot]: ...


class TripStore(Protocol):
    async def create_trip(
        self,
        request: TripRequest,
        estimate: RouteEstimate,
        *,
        rider_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Trip: ...

    async def get_trip(self, trip_id: int) -> Optional[Trip]: ...

    async def get_by_idempotency_key(self, key: str) -> Optional[Trip]: ...


class ReservationStore(Protocol):
    async def reserve(self, trip_id: int, driver_id: int) -> Trip:
        """Atomically accept *trip_id* for *driver_id*; ``ConflictError`` if raced."""

    async def release(
        self, trip_id: int, driver_id: int, *, cancel_trip: bool = False
    ) -> bool:
        """Undo a reservation this trip holds; never frees another trip's driver."""

    async def cancel_trip(self, trip_id: int) -> Optional[Trip]: ...


class AssignmentPublisher(Protocol):
    async def publish(self, event: AssignmentEvent) -> None: ...


class DispatchStore(HazardSupply, DriverDirectory, TripStore, ReservationStore, Protocol):
    """Everything ``DispatchService`` needs from storage."""
