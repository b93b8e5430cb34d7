"""
Trip endpoints
==============

POST  /api/v1/trips/estimate     -- route, fare and safety estimate only
POST  /api/v1/trips              -- create a trip request and dispatch it (202)
GET   /api/v1/trips/{trip_id}    -- trip status, driver and route
POST  /api/v1/trips/{trip_id}/dispatch -- re-run matching for a pending trip
PATCH /api/v1/trips/{trip_id}/cancel   -- cancel a trip and free its driver
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from rescue_dispatch.api.dependencies import get_dispatch_service, get_store
from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.api.schemas import (
    EstimateRequest,
    RouteEstimateResponse,
    TripCreateRequest,
    TripResponse,
)
from rescue_dispatch.domain.protocols import TripStore
from rescue_dispatch.services.dispatch import DispatchService

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "/estimate",
    response_model=RouteEstimateResponse,
    summary="Estimate route, fare and safety for a trip",
)
@limiter.limit("100/minute")
async def estimate_trip(
    request: Request,
    body: EstimateRequest,
    service: DispatchService = Depends(get_dispatch_service),
):
    estimate = await service.estimate(body.to_domain())
    return RouteEstimateResponse.from_estimate(estimate)


@router.post(
    "",
    status_code=202,
    response_model=TripResponse,
    summary="Create a trip request",
    responses={
        202: {
            "description": (
                "Trip recorded. Status is 'accepted' when a driver was "
                "assigned, 'pending' while still searching."
            )
        }
    },
)
@limiter.limit("100/minute")
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    service: DispatchService = Depends(get_dispatch_service),
):
    result = await service.request_trip(
        body.to_domain(),
        rider_id=body.rider_id,
        idempotency_key=body.idempotency_key,
    )
    return TripResponse.from_trip(result.trip)


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get trip status",
)
@limiter.limit("100/minute")
async def get_trip(
    request: Request,
    trip_id: int,
    store: TripStore = Depends(get_store),
):
    trip = await store.get_trip(trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    return TripResponse.from_trip(trip)


@router.post(
    "/{trip_id}/dispatch",
    response_model=TripResponse,
    summary="Retry matching for a pending trip",
)
@limiter.limit("100/minute")
async def redispatch_trip(
    request: Request,
    trip_id: int,
    service: DispatchService = Depends(get_dispatch_service),
):
    result = await service.dispatch(trip_id)
    return TripResponse.from_trip(result.trip)


@router.patch(
    "/{trip_id}/cancel",
    response_model=TripResponse,
    summary="Cancel a trip",
    description=(
        "Transitions a non-terminal trip to CANCELLED. "
        "If a driver was assigned, the driver becomes available again."
    ),
)
@limiter.limit("100/minute")
async def cancel_trip(
    request: Request,
    trip_id: int,
    service: DispatchService = Depends(get_dispatch_service),
):
    trip = await service.cancel(trip_id)
    return TripResponse.from_trip(trip)
