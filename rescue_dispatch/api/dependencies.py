"""FastAPI dependency injection helpers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from rescue_dispatch.config import settings
from rescue_dispatch.domain.errors import TransientIOError
from rescue_dispatch.domain.protocols import AssignmentPublisher, HazardSupply
from rescue_dispatch.infrastructure.database import async_session_factory
from rescue_dispatch.infrastructure.events import RedisAssignmentPublisher
from rescue_dispatch.infrastructure.redis_client import get_redis
from rescue_dispatch.infrastructure.repositories import SqlDispatchStore
from rescue_dispatch.services.dispatch import DispatchService
from rescue_dispatch.workers.hazard_sync import HazardSnapshotCache


def get_session_factory() -> async_sessionmaker:
    return async_session_factory


def get_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> SqlDispatchStore:
    return SqlDispatchStore(
        session_factory,
        h3_resolution=settings.h3_resolution,
        directory_radius_km=max(
            settings.normal_max_distance_km, settings.emergency_max_distance_km
        ),
    )


def get_publisher() -> AssignmentPublisher:
    return RedisAssignmentPublisher(get_redis())


def get_hazards(
    request: Request, store: SqlDispatchStore = Depends(get_store)
) -> HazardSupply:
    """The refresher's cached snapshot when running, else straight from the DB."""
    cache = getattr(request.app.state, "hazard_cache", None)
    return cache if cache is not None else store


def get_dispatch_service(
    store: SqlDispatchStore = Depends(get_store),
    publisher: AssignmentPublisher = Depends(get_publisher),
    hazards: HazardSupply = Depends(get_hazards),
) -> DispatchService:
    return DispatchService.from_settings(store, publisher, settings, hazards=hazards)


def get_hazard_cache(request: Request) -> HazardSnapshotCache:
    cache = getattr(request.app.state, "hazard_cache", None)
    if cache is None:
        raise TransientIOError("Hazard refresher is not running")
    return cache
