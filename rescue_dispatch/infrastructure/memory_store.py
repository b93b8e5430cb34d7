"""
In-memory dispatch store.

An arena of versioned, immutable driver records plus trip records, used
for tests and single-process runs.  Every write to a driver replaces its
``DriverSnapshot`` with a new one whose ``version`` is one higher.

Serialisation
-------------
* Driver writes hold that driver's ``asyncio.Lock``.
* Reservation / release / cancellation hold the trip lock *then* the
  driver lock (fixed order, so they cannot deadlock).
* ``write_latency`` simulates the storage round-trip of a reservation
  while the locks are held, which is what makes commit races observable.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Optional

from rescue_dispatch.domain.entities import (
    Coordinate,
    DriverSnapshot,
    HazardZone,
    RouteEstimate,
    Trip,
    TripRequest,
)
from rescue_dispatch.domain.enums import ACTIVE_STATUSES, TripStatus
from rescue_dispatch.domain.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class InMemoryDispatchStore:
    def __init__(
        self,
        hazards: Iterable[HazardZone] = (),
        drivers: Iterable[DriverSnapshot] = (),
        write_latency: float = 0.0,
    ):
        self._hazards: tuple[HazardZone, ...] = tuple(hazards)
        self._drivers: dict[int, DriverSnapshot] = {d.id: d for d in drivers}
        self._trips: dict[int, Trip] = {}
        self._holders: dict[int, int] = {}  # driver_id -> trip_id
        self._driver_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._trip_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._trip_ids = itertools.count(1)
        self.write_latency = write_latency

    # ── Hazard supply ─────────────────────────────────────────────

    async def active_hazards(self) -> tuple[HazardZone, ...]:
        return tuple(z for z in self._hazards if z.active)

    # ── Driver directory ──────────────────────────────────────────

    async def available_drivers(
        self, near: Optional[Coordinate] = None
    ) -> list[DriverSnapshot]:
        return [d for d in self._drivers.values() if d.is_eligible]

    async def get_driver(self, driver_id: int) -> Optional[DriverSnapshot]:
        return self._drivers.get(driver_id)

    async def add_driver(self, driver: DriverSnapshot) -> DriverSnapshot:
        async with self._driver_locks[driver.id]:
            self._drivers[driver.id] = driver
            return driver

    async def update_location(
        self, driver_id: int, location: Coordinate
    ) -> DriverSnapshot:
        async with self._driver_locks[driver_id]:
            return self._write(self._require_driver(driver_id), location=location)

    async def set_availability(
        self,
        driver_id: int,
        is_available: bool,
        is_online: Optional[bool] = None,
    ) -> DriverSnapshot:
        async with self._driver_locks[driver_id]:
            driver = self._require_driver(driver_id)
            if is_available and driver_id in self._holders:
                raise ConflictError(
                    f"Driver {driver_id} is assigned to trip {self._holders[driver_id]}"
                )
            changes = {"is_available": is_available}
            if is_online is not None:
                changes["is_online"] = is_online
            return self._write(driver, **changes)

    # ── Trip store ────────────────────────────────────────────────

    async def create_trip(
        self,
        request: TripRequest,
        estimate: RouteEstimate,
        *,
        rider_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Trip:
        trip = Trip(
            id=next(self._trip_ids),
            rider_id=rider_id,
            pickup=request.pickup,
            destination=request.destination,
            urgency=request.urgency,
            idempotency_key=idempotency_key,
        )
        trip.apply_estimate(estimate)
        self._trips[trip.id] = trip
        return copy.deepcopy(trip)

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        trip = self._trips.get(trip_id)
        return copy.deepcopy(trip) if trip else None

    async def get_by_idempotency_key(self, key: str) -> Optional[Trip]:
        for trip in self._trips.values():
            if trip.idempotency_key == key:
                return copy.deepcopy(trip)
        return None

    # ── Reservation ───────────────────────────────────────────────

    async def reserve(self, trip_id: int, driver_id: int) -> Trip:
        async with self._trip_locks[trip_id], self._driver_locks[driver_id]:
            trip = self._require_trip(trip_id)
            driver = self._require_driver(driver_id)
            if trip.status != TripStatus.PENDING:
                raise ConflictError(f"Trip {trip_id} is {trip.status.value}")
            if not (driver.is_available and driver.is_online):
                raise ConflictError(f"Driver {driver_id} is no longer available")

            trip.driver_id = driver_id
            trip.transition_to(TripStatus.ACCEPTED)
            self._holders[driver_id] = trip_id
            self._write(driver, is_available=False)

            if self.write_latency:
                await asyncio.sleep(self.write_latency)
            return copy.deepcopy(trip)

    async def release(
        self, trip_id: int, driver_id: int, *, cancel_trip: bool = False
    ) -> bool:
        async with self._trip_locks[trip_id], self._driver_locks[driver_id]:
            trip = self._trips.get(trip_id)
            released = False
            if self._holders.get(driver_id) == trip_id:
                del self._holders[driver_id]
                self._write(self._require_driver(driver_id), is_available=True)
                released = True
            if trip is not None:
                if trip.driver_id == driver_id and trip.status == TripStatus.ACCEPTED:
                    trip.driver_id = None
                    trip.transition_to(TripStatus.PENDING)
                if cancel_trip and not trip.is_terminal:
                    trip.transition_to(TripStatus.CANCELLED)
            return released

    async def cancel_trip(self, trip_id: int) -> Optional[Trip]:
        async with self._trip_locks[trip_id]:
            trip = self._trips.get(trip_id)
            if trip is None:
                return None
            driver_id = trip.driver_id
            if driver_id is not None and trip.status in ACTIVE_STATUSES:
                async with self._driver_locks[driver_id]:
                    if self._holders.get(driver_id) == trip_id:
                        del self._holders[driver_id]
                        self._write(self._require_driver(driver_id), is_available=True)
            trip.transition_to(TripStatus.CANCELLED)
            return copy.deepcopy(trip)

    # ── Internals ─────────────────────────────────────────────────

    def _require_driver(self, driver_id: int) -> DriverSnapshot:
        try:
            return self._drivers[driver_id]
        except KeyError:
            raise NotFoundError(f"Driver {driver_id} not found") from None

    def _require_trip(self, trip_id: int) -> Trip:
        try:
            return self._trips[trip_id]
        except KeyError:
            raise NotFoundError(f"Trip {trip_id} not found") from None

    def _write(self, driver: DriverSnapshot, **changes) -> DriverSnapshot:
        updated = replace(driver, version=driver.version + 1, **changes)
        self._drivers[driver.id] = updated
        return updated
