"""
FastAPI application factory.

* Registers routes for trips, drivers, hazards and admin.
* Starts / stops the background hazard refresher via lifespan events.
* Maps domain errors to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.api.routes import admin, drivers, hazards, trips
from rescue_dispatch.config import settings
from rescue_dispatch.domain.entities import InvalidStateTransition
from rescue_dispatch.domain.errors import (
    ConflictError,
    InputError,
    NotFoundError,
    TransientIOError,
)
from rescue_dispatch.infrastructure.database import async_session_factory
from rescue_dispatch.infrastructure.redis_client import close_redis
from rescue_dispatch.infrastructure.repositories import SqlDispatchStore
from rescue_dispatch.workers import hazard_sync as _hazard_sync

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the hazard refresher on startup; stop it on shutdown."""
    source = SqlDispatchStore(async_session_factory, h3_resolution=settings.h3_resolution)
    app.state.hazard_cache = _hazard_sync.HazardSnapshotCache(source)
    await _hazard_sync.start_sync_loop(app.state.hazard_cache)
    yield
    await _hazard_sync.stop_sync_loop()
    await close_redis()


def _error(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app() -> FastAPI:
    app = FastAPI(
        title="Hazard-Aware Rescue Dispatch API",
        description=(
            "Matches trip requests to nearby drivers while steering routes "
            "and emergency assignments away from active hazard zones.  "
            "Supports concurrent dispatch, cancellations and periodic "
            "hazard refresh."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(InputError, _error(422))
    app.add_exception_handler(NotFoundError, _error(404))
    app.add_exception_handler(ConflictError, _error(409))
    app.add_exception_handler(InvalidStateTransition, _error(409))
    app.add_exception_handler(TransientIOError, _error(503))

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(hazards.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
