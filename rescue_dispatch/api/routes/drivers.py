"""
Driver endpoints
================

GET   /api/v1/drivers/{driver_id}              -- driver record
PATCH /api/v1/drivers/{driver_id}/location     -- report current position
PATCH /api/v1/drivers/{driver_id}/availability -- go (un)available / on/offline
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from rescue_dispatch.api.dependencies import get_store
from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.api.schemas import (
    DriverAvailabilityUpdate,
    DriverLocationUpdate,
    DriverResponse,
)
from rescue_dispatch.domain.entities import Coordinate
from rescue_dispatch.infrastructure.repositories import SqlDispatchStore

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("/{driver_id}", response_model=DriverResponse, summary="Get a driver")
@limiter.limit("100/minute")
async def get_driver(
    request: Request,
    driver_id: int,
    store: SqlDispatchStore = Depends(get_store),
):
    driver = await store.get_driver(driver_id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")
    return DriverResponse.from_snapshot(driver)


@router.patch(
    "/{driver_id}/location",
    response_model=DriverResponse,
    summary="Update a driver's location",
)
@limiter.limit("100/minute")
async def update_location(
    request: Request,
    driver_id: int,
    body: DriverLocationUpdate,
    store: SqlDispatchStore = Depends(get_store),
):
    driver = await store.update_location(driver_id, Coordinate(body.lat, body.lng))
    return DriverResponse.from_snapshot(driver)


@router.patch(
    "/{driver_id}/availability",
    response_model=DriverResponse,
    summary="Update a driver's availability",
    description="Going available while holding an active trip is rejected with 409.",
)
@limiter.limit("100/minute")
async def update_availability(
    request: Request,
    driver_id: int,
    body: DriverAvailabilityUpdate,
    store: SqlDispatchStore = Depends(get_store),
):
    driver = await store.set_availability(
        driver_id, body.is_available, is_online=body.is_online
    )
    return DriverResponse.from_snapshot(driver)
