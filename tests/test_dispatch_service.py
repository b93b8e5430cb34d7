"""End-to-end tests for the dispatch pipeline over the in-memory store."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from rescue_dispatch.config import Settings
from rescue_dispatch.domain.entities import Coordinate, DriverSnapshot, TripRequest
from rescue_dispatch.domain.enums import TripStatus, Urgency
from rescue_dispatch.domain.errors import NotFoundError, TransientIOError
from rescue_dispatch.domain.routing import GridAvoidancePlanner
from rescue_dispatch.infrastructure.events import InMemoryAssignmentPublisher
from rescue_dispatch.infrastructure.memory_store import InMemoryDispatchStore
from rescue_dispatch.services.coordinator import DispatchCoordinator
from rescue_dispatch.services.dispatch import DispatchService

PICKUP = Coordinate(12.97, 77.59)
DESTINATION = Coordinate(13.02, 77.62)


def _request(urgency=Urgency.NORMAL) -> TripRequest:
    return TripRequest(PICKUP, DESTINATION, urgency)


def _service(store, publisher=None, **kwargs) -> DispatchService:
    publisher = publisher or InMemoryAssignmentPublisher()
    return DispatchService(store, DispatchCoordinator(store, publisher), **kwargs)


class _SnatchingStore(InMemoryDispatchStore):
    """Another dispatcher grabs each driver just before we reserve it."""

    def __init__(self, *args, snatch: int = 1, **kwargs):
        super().__init__(*args, **kwargs)
        self.snatch = snatch

    async def reserve(self, trip_id, driver_id):
        if self.snatch > 0:
            self.snatch -= 1
            await self.set_availability(driver_id, False)
        return await super().reserve(trip_id, driver_id)


class TestRequestTrip:
    @pytest.mark.asyncio
    async def test_assigns_nearest_driver(self, make_driver):
        store = InMemoryDispatchStore(
            drivers=[make_driver(1, 13.006, 77.59), make_driver(2, 12.979, 77.59)]
        )
        publisher = InMemoryAssignmentPublisher()
        result = await _service(store, publisher).request_trip(_request(), rider_id="r-1")

        assert result.assigned
        assert result.trip.driver_id == 2
        assert result.match.driver_id == 2
        assert result.attempts == 1
        assert result.trip.estimated_fare > 5.0
        assert [e.driver_id for e in publisher.events] == [2]
        assert not (await store.get_driver(2)).is_available

    @pytest.mark.asyncio
    async def test_no_driver_leaves_trip_pending(self):
        result = await _service(InMemoryDispatchStore()).request_trip(_request())
        assert not result.assigned
        assert result.match is None
        assert result.trip.status == TripStatus.PENDING

    @pytest.mark.asyncio
    async def test_idempotency_key_returns_existing_trip(self, make_driver):
        store = InMemoryDispatchStore(drivers=[make_driver(1, 12.979, 77.59)])
        service = _service(store)

        first = await service.request_trip(_request(), idempotency_key="retry-1")
        second = await service.request_trip(_request(), idempotency_key="retry-1")

        assert first.trip.id == second.trip.id
        assert second.trip.status == TripStatus.ACCEPTED
        assert await store.get_trip(2) is None

    @pytest.mark.asyncio
    async def test_emergency_avoids_driver_in_flood(self, make_driver, make_zone):
        store = InMemoryDispatchStore(
            hazards=[make_zone(zone_id=1, lat=12.979, lng=77.59, radius_km=0.5, severity=8)],
            drivers=[make_driver(1, 12.979, 77.59), make_driver(2, 13.006, 77.59)],
        )
        result = await _service(store).request_trip(_request(Urgency.EMERGENCY))
        assert result.trip.driver_id == 2

    @pytest.mark.asyncio
    async def test_retries_after_conflict(self, make_driver):
        store = _SnatchingStore(
            drivers=[make_driver(1, 12.979, 77.59), make_driver(2, 13.006, 77.59)],
            snatch=1,
        )
        result = await _service(store).request_trip(_request())
        assert result.assigned
        assert result.trip.driver_id == 2
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, make_driver):
        store = _SnatchingStore(
            drivers=[make_driver(i, 12.979 + i * 0.001, 77.59) for i in range(1, 6)],
            snatch=10,
        )
        result = await _service(store, max_attempts=3).request_trip(_request())
        assert not result.assigned
        assert result.attempts == 3
        assert result.trip.status == TripStatus.PENDING

    @pytest.mark.asyncio
    async def test_hazard_supply_failure_propagates(self, make_driver):
        store = InMemoryDispatchStore(drivers=[make_driver(1, 12.979, 77.59)])
        hazards = AsyncMock()
        hazards.active_hazards = AsyncMock(side_effect=TransientIOError("feed down"))

        with pytest.raises(TransientIOError):
            await _service(store, hazards=hazards).request_trip(_request())

    @pytest.mark.asyncio
    async def test_cancelled_request_frees_driver(self):
        store = InMemoryDispatchStore(
            drivers=[DriverSnapshot(id=1, location=Coordinate(12.979, 77.59))],
            write_latency=0.2,
        )
        task = asyncio.create_task(_service(store).request_trip(_request()))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        trip = await store.get_trip(1)
        assert trip.status == TripStatus.CANCELLED
        assert (await store.get_driver(1)).is_available


class TestRedispatchAndCancel:
    @pytest.mark.asyncio
    async def test_dispatch_picks_up_new_driver(self, make_driver):
        store = InMemoryDispatchStore()
        service = _service(store)
        pending = await service.request_trip(_request())

        await store.add_driver(make_driver(1, 12.979, 77.59))
        result = await service.dispatch(pending.trip.id)

        assert result.assigned
        assert result.trip.driver_id == 1

    @pytest.mark.asyncio
    async def test_dispatch_leaves_assigned_trip_alone(self, make_driver):
        store = InMemoryDispatchStore(drivers=[make_driver(1, 12.979, 77.59)])
        service = _service(store)
        assigned = await service.request_trip(_request())

        result = await service.dispatch(assigned.trip.id)
        assert result.trip.driver_id == 1
        assert result.attempts == 0

    @pytest.mark.asyncio
    async def test_dispatch_unknown_trip(self):
        with pytest.raises(NotFoundError):
            await _service(InMemoryDispatchStore()).dispatch(42)

    @pytest.mark.asyncio
    async def test_cancel_frees_driver(self, make_driver):
        store = InMemoryDispatchStore(drivers=[make_driver(1, 12.979, 77.59)])
        service = _service(store)
        assigned = await service.request_trip(_request())

        trip = await service.cancel(assigned.trip.id)
        assert trip.status == TripStatus.CANCELLED
        assert (await store.get_driver(1)).is_available

    @pytest.mark.asyncio
    async def test_cancel_unknown_trip(self):
        with pytest.raises(NotFoundError):
            await _service(InMemoryDispatchStore()).cancel(42)


class TestFromSettings:
    def test_wires_configured_components(self):
        store = InMemoryDispatchStore()
        service = DispatchService.from_settings(
            store,
            InMemoryAssignmentPublisher(),
            Settings(route_planner="grid", dispatch_max_attempts=5, commit_timeout_seconds=2.0),
        )
        assert isinstance(service.estimator.planner, GridAvoidancePlanner)
        assert service.max_attempts == 5
        assert service.coordinator.commit_timeout == 2.0
        assert service.hazards is store
