"""
Hazard endpoints
================

GET  /api/v1/hazards           -- all active hazard zones
GET  /api/v1/hazards/nearby    -- active zones centred within radius_km of a point
GET  /api/v1/hazards/{zone_id} -- one active zone from the current snapshot
POST /api/v1/hazards/sync      -- run a refresh cycle now instead of waiting
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rescue_dispatch.api.dependencies import get_hazard_cache, get_hazards
from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.api.schemas import HazardSyncResponse, HazardZoneResponse
from rescue_dispatch.domain.entities import Coordinate
from rescue_dispatch.domain.hazards import HazardIndex
from rescue_dispatch.domain.protocols import HazardSupply
from rescue_dispatch.workers import hazard_sync
from rescue_dispatch.workers.hazard_sync import HazardSnapshotCache

router = APIRouter(prefix="/hazards", tags=["hazards"])


@router.get("", response_model=list[HazardZoneResponse], summary="List active hazards")
@limiter.limit("100/minute")
async def list_hazards(
    request: Request,
    hazards: HazardSupply = Depends(get_hazards),
):
    index = HazardIndex(await hazards.active_hazards())
    zones = sorted(index.active(), key=lambda z: (-z.severity, z.id))
    return [HazardZoneResponse.from_zone(z) for z in zones]


@router.get(
    "/nearby",
    response_model=list[HazardZoneResponse],
    summary="List active hazards near a point",
)
@limiter.limit("100/minute")
async def nearby_hazards(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, gt=0, le=500),
    hazards: HazardSupply = Depends(get_hazards),
):
    index = HazardIndex(await hazards.active_hazards())
    zones = index.zones_near(Coordinate(lat, lng), radius_km)
    return [HazardZoneResponse.from_zone(z) for z in zones]


@router.post(
    "/sync",
    response_model=HazardSyncResponse,
    summary="Expire stale zones and reload the snapshot now",
)
@limiter.limit("10/minute")
async def sync_hazards(
    request: Request,
    cache: HazardSnapshotCache = Depends(get_hazard_cache),
):
    deactivated = await hazard_sync.run_sync_cycle(cache)
    zones = await cache.active_hazards()
    return HazardSyncResponse(
        active_zones=len(zones),
        deactivated=deactivated,
        refreshed_at=cache.refreshed_at,
    )


@router.get(
    "/{zone_id}",
    response_model=HazardZoneResponse,
    summary="Get an active hazard zone",
)
@limiter.limit("100/minute")
async def get_hazard(
    request: Request,
    zone_id: int,
    hazards: HazardSupply = Depends(get_hazards),
):
    for zone in HazardIndex(await hazards.active_hazards()).active():
        if zone.id == zone_id:
            return HazardZoneResponse.from_zone(zone)
    raise HTTPException(status_code=404, detail="Hazard zone not found")
