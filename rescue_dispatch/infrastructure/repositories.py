"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``SqlDispatchStore`` composes them into
short transactions and speaks domain entities to the dispatch service.

Driver writes are single conditional ``UPDATE`` statements that bump
``version``; a reservation is two of them in one transaction, checked by
``rowcount``, so two racing commits cannot both win.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import DriverModel, HazardZoneModel, TripModel
from rescue_dispatch.domain.distance import cells_within, driver_cell
from rescue_dispatch.domain.entities import (
    Coordinate,
    DriverSnapshot,
    HazardZone,
    InvalidStateTransition,
    NotedHazard,
    RouteEstimate,
    Trip,
    TripRequest,
    clamp_rating,
    clamp_severity,
)
from rescue_dispatch.domain.enums import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    HazardCategory,
    TripStatus,
)
from rescue_dispatch.domain.errors import (
    ConflictError,
    InputError,
    NotFoundError,
    TransientIOError,
)

logger = logging.getLogger(__name__)


# ── Row <-> entity mapping ───────────────────────────────────────────


def to_driver_snapshot(row: DriverModel) -> DriverSnapshot:
    location = None
    if row.current_lat is not None and row.current_lng is not None:
        location = Coordinate(row.current_lat, row.current_lng)
    return DriverSnapshot(
        id=row.id,
        location=location,
        is_available=row.is_available,
        is_online=row.is_online,
        rating=clamp_rating(row.rating),
        total_trips=max(0, row.total_trips),
        emergency_equipment=frozenset(row.emergency_equipment or ()),
        version=row.version,
    )


def to_hazard_zone(row: HazardZoneModel) -> HazardZone:
    return HazardZone(
        id=row.id,
        category=row.category,
        severity=clamp_severity(row.severity),
        center=Coordinate(row.center_lat, row.center_lng),
        radius_km=max(0.0, row.radius_km),
        alert_level=row.alert_level,
        active=row.is_active,
        last_updated=row.last_updated,
        name=row.name,
        description=row.description,
        external_id=row.external_id,
    )


def to_trip(row: TripModel) -> Trip:
    return Trip(
        id=row.id,
        rider_id=row.rider_id,
        pickup=Coordinate(row.pickup_lat, row.pickup_lng),
        destination=Coordinate(row.destination_lat, row.destination_lng),
        urgency=row.urgency,
        status=row.status,
        driver_id=row.driver_id,
        distance_km=row.distance_km,
        duration_min=row.duration_min,
        estimated_fare=row.estimated_fare,
        waypoints=[Coordinate(lat, lng) for lat, lng in (row.waypoints or [])],
        hazard_zones_noted=[
            NotedHazard(h["id"], HazardCategory(h["category"]), h["severity"])
            for h in (row.hazard_zones_noted or [])
        ],
        safety_score=row.safety_score,
        idempotency_key=row.idempotency_key,
        created_at=row.created_at,
    )


# ── Repositories ─────────────────────────────────────────────────────


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_available(
        self, cells: Optional[Sequence[str]] = None
    ) -> list[DriverModel]:
        query = select(DriverModel).where(
            DriverModel.is_available.is_(True),
            DriverModel.is_online.is_(True),
            DriverModel.current_lat.is_not(None),
            DriverModel.current_lng.is_not(None),
        )
        if cells is not None:
            query = query.where(DriverModel.h3_cell.in_(cells))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_location(
        self, driver_id: int, lat: float, lng: float, cell: str
    ) -> bool:
        return await self._update(
            DriverModel.id == driver_id,
            current_lat=lat,
            current_lng=lng,
            h3_cell=cell,
        )

    async def set_online(self, driver_id: int, is_online: bool) -> bool:
        return await self._update(DriverModel.id == driver_id, is_online=is_online)

    async def mark_available(self, driver_id: int) -> bool:
        """Flip to available unless the driver still holds an active trip."""
        holds_trip = exists().where(
            TripModel.driver_id == driver_id,
            TripModel.status.in_(ACTIVE_STATUSES),
        )
        return await self._update(
            and_(DriverModel.id == driver_id, ~holds_trip), is_available=True
        )

    async def mark_unavailable(self, driver_id: int) -> bool:
        return await self._update(DriverModel.id == driver_id, is_available=False)

    async def reserve(self, driver_id: int) -> bool:
        """Compare-and-set available -> unavailable."""
        return await self._update(
            and_(
                DriverModel.id == driver_id,
                DriverModel.is_available.is_(True),
                DriverModel.is_online.is_(True),
            ),
            is_available=False,
        )

    async def release(self, driver_id: int) -> bool:
        return await self._update(
            and_(DriverModel.id == driver_id, DriverModel.is_available.is_(False)),
            is_available=True,
        )

    async def _update(self, condition, **values) -> bool:
        result = await self.session.execute(
            update(DriverModel)
            .where(condition)
            .values(version=DriverModel.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class HazardRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, zone: HazardZoneModel) -> HazardZoneModel:
        self.session.add(zone)
        await self.session.flush()
        return zone

    async def get_by_id(self, zone_id: int) -> Optional[HazardZoneModel]:
        return await self.session.get(HazardZoneModel, zone_id)

    async def get_active(self) -> list[HazardZoneModel]:
        result = await self.session.execute(
            select(HazardZoneModel).where(HazardZoneModel.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def deactivate_stale(self, updated_before: datetime) -> int:
        result = await self.session.execute(
            update(HazardZoneModel)
            .where(
                HazardZoneModel.is_active.is_(True),
                HazardZoneModel.last_updated < updated_before,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_trip(
        self,
        request: TripRequest,
        estimate: RouteEstimate,
        *,
        rider_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> TripModel:
        trip = TripModel(
            rider_id=rider_id,
            pickup_lat=request.pickup.latitude,
            pickup_lng=request.pickup.longitude,
            destination_lat=request.destination.latitude,
            destination_lng=request.destination.longitude,
            urgency=request.urgency,
            status=TripStatus.PENDING,
            distance_km=estimate.distance_km,
            duration_min=estimate.duration_min,
            estimated_fare=estimate.estimated_fare,
            safety_score=estimate.safety_score,
            waypoints=[list(p.as_tuple()) for p in estimate.waypoints],
            hazard_zones_noted=[
                {"id": h.id, "category": h.category.value, "severity": h.severity}
                for h in estimate.hazard_zones_noted
            ],
            idempotency_key=idempotency_key,
        )
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        """SELECT ... FOR UPDATE so a cancel cannot interleave with a commit."""
        result = await self.session.execute(
            select(TripModel).where(TripModel.id == trip_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(self, key: str) -> Optional[TripModel]:
        result = await self.session.execute(
            select(TripModel).where(TripModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def accept(self, trip_id: int, driver_id: int) -> bool:
        return await self._update(
            and_(TripModel.id == trip_id, TripModel.status == TripStatus.PENDING),
            driver_id=driver_id,
            status=TripStatus.ACCEPTED,
        )

    async def revert_to_pending(self, trip_id: int, driver_id: int) -> bool:
        return await self._update(
            and_(
                TripModel.id == trip_id,
                TripModel.driver_id == driver_id,
                TripModel.status == TripStatus.ACCEPTED,
            ),
            driver_id=None,
            status=TripStatus.PENDING,
        )

    async def cancel(self, trip_id: int) -> bool:
        return await self._update(
            and_(TripModel.id == trip_id, TripModel.status.not_in(TERMINAL_STATUSES)),
            status=TripStatus.CANCELLED,
        )

    async def _update(self, condition, **values) -> bool:
        result = await self.session.execute(
            update(TripModel)
            .where(condition)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


# ── Dispatch store facade ────────────────────────────────────────────


class SqlDispatchStore:
    """Hazard supply, driver directory, trip store and reservation store."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        h3_resolution: int = 6,
        directory_radius_km: float = 20.0,
    ):
        self._session_factory = session_factory
        self.h3_resolution = h3_resolution
        self.directory_radius_km = directory_radius_km

    # ── Hazard supply ─────────────────────────────────────────────

    async def active_hazards(self) -> list[HazardZone]:
        try:
            async with self._session_factory() as session:
                rows = await HazardRepository(session).get_active()
        except SQLAlchemyError as exc:
            raise TransientIOError("hazard supply unavailable") from exc

        zones = []
        for row in rows:
            try:
                zones.append(to_hazard_zone(row))
            except InputError:
                logger.warning("Skipping malformed hazard zone %s", row.id)
        return zones

    # ── Driver directory ──────────────────────────────────────────

    async def available_drivers(
        self, near: Optional[Coordinate] = None
    ) -> list[DriverSnapshot]:
        cells = None
        if near is not None:
            cells = cells_within(
                near.latitude, near.longitude,
                self.directory_radius_km, self.h3_resolution,
            )
        try:
            async with self._session_factory() as session:
                rows = await DriverRepository(session).get_available(cells)
        except SQLAlchemyError as exc:
            raise TransientIOError("driver directory unavailable") from exc
        return [to_driver_snapshot(r) for r in rows]

    async def get_driver(self, driver_id: int) -> Optional[DriverSnapshot]:
        async with self._session_factory() as session:
            row = await DriverRepository(session).get_by_id(driver_id)
            return to_driver_snapshot(row) if row else None

    async def update_location(
        self, driver_id: int, location: Coordinate
    ) -> DriverSnapshot:
        cell = driver_cell(location.latitude, location.longitude, self.h3_resolution)
        async with self._session_factory() as session, session.begin():
            repo = DriverRepository(session)
            if not await repo.update_location(
                driver_id, location.latitude, location.longitude, cell
            ):
                raise NotFoundError(f"Driver {driver_id} not found")
            return to_driver_snapshot(await self._reload(session, driver_id))

    async def set_availability(
        self,
        driver_id: int,
        is_available: bool,
        is_online: Optional[bool] = None,
    ) -> DriverSnapshot:
        async with self._session_factory() as session, session.begin():
            repo = DriverRepository(session)
            if await repo.get_by_id(driver_id) is None:
                raise NotFoundError(f"Driver {driver_id} not found")
            if is_online is not None:
                await repo.set_online(driver_id, is_online)
            if is_available:
                if not await repo.mark_available(driver_id):
                    raise ConflictError(f"Driver {driver_id} holds an active trip")
            else:
                await repo.mark_unavailable(driver_id)
            return to_driver_snapshot(await self._reload(session, driver_id))

    # ── Trip store ────────────────────────────────────────────────

    async def create_trip(
        self,
        request: TripRequest,
        estimate: RouteEstimate,
        *,
        rider_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Trip:
        async with self._session_factory() as session, session.begin():
            row = await TripRepository(session).create_trip(
                request, estimate, rider_id=rider_id, idempotency_key=idempotency_key
            )
            await session.refresh(row)
            return to_trip(row)

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        async with self._session_factory() as session:
            row = await TripRepository(session).get_by_id(trip_id)
            return to_trip(row) if row else None

    async def get_by_idempotency_key(self, key: str) -> Optional[Trip]:
        async with self._session_factory() as session:
            row = await TripRepository(session).get_by_idempotency_key(key)
            return to_trip(row) if row else None

    # ── Reservation ───────────────────────────────────────────────

    async def reserve(self, trip_id: int, driver_id: int) -> Trip:
        async with self._session_factory() as session, session.begin():
            trips = TripRepository(session)
            if await trips.get_by_id(trip_id) is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            # Raising inside ``begin()`` rolls both updates back.
            if not await trips.accept(trip_id, driver_id):
                raise ConflictError(f"Trip {trip_id} is no longer pending")
            if not await DriverRepository(session).reserve(driver_id):
                raise ConflictError(f"Driver {driver_id} is no longer available")
            row = await self._reload_trip(session, trip_id)
            return to_trip(row)

    async def release(
        self, trip_id: int, driver_id: int, *, cancel_trip: bool = False
    ) -> bool:
        async with self._session_factory() as session, session.begin():
            trips = TripRepository(session)
            released = False
            if await trips.revert_to_pending(trip_id, driver_id):
                released = await DriverRepository(session).release(driver_id)
            if cancel_trip:
                await trips.cancel(trip_id)
            return released

    async def cancel_trip(self, trip_id: int) -> Optional[Trip]:
        async with self._session_factory() as session, session.begin():
            trips = TripRepository(session)
            row = await trips.get_for_update(trip_id)
            if row is None:
                return None
            if row.status in TERMINAL_STATUSES:
                raise InvalidStateTransition(
                    f"Cannot transition from {row.status.value} to cancelled"
                )
            if row.driver_id is not None and row.status in ACTIVE_STATUSES:
                await DriverRepository(session).release(row.driver_id)
            await trips.cancel(trip_id)
            return to_trip(await self._reload_trip(session, trip_id))

    # ── Internals ─────────────────────────────────────────────────

    @staticmethod
    async def _reload(session: AsyncSession, driver_id: int) -> DriverModel:
        result = await session.execute(
            select(DriverModel)
            .where(DriverModel.id == driver_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def _reload_trip(session: AsyncSession, trip_id: int) -> TripModel:
        result = await session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
