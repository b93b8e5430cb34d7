"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health -- simple health check
GET /api/v1/admin/stats  -- available drivers and active hazard count
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from rescue_dispatch.api.dependencies import get_hazards, get_store
from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.api.schemas import HealthResponse
from rescue_dispatch.domain.protocols import HazardSupply
from rescue_dispatch.infrastructure.repositories import SqlDispatchStore

router = APIRouter(prefix="/admin", tags=["admin"])


class StatsResponse(BaseModel):
    available_drivers: int
    active_hazards: int


@router.get("/stats", response_model=StatsResponse, summary="Dispatch capacity snapshot")
@limiter.limit("100/minute")
async def stats(
    request: Request,
    store: SqlDispatchStore = Depends(get_store),
    hazards: HazardSupply = Depends(get_hazards),
):
    drivers = await store.available_drivers()
    zones = await hazards.active_hazards()
    return StatsResponse(available_drivers=len(drivers), active_hazards=len(zones))


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
