"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from rescue_dispatch.domain.entities import (
    Coordinate,
    DriverSnapshot,
    HazardZone,
    RouteEstimate,
    Trip,
    TripRequest,
)
from rescue_dispatch.domain.enums import AlertLevel, HazardCategory, TripStatus, Urgency


# ── Requests ──────────────────────────────────────────────────────────


class EstimateRequest(BaseModel):
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    destination_lat: float = Field(..., ge=-90, le=90)
    destination_lng: float = Field(..., ge=-180, le=180)
    urgency: Urgency = Urgency.NORMAL

    def to_domain(self) -> TripRequest:
        return TripRequest(
            pickup=Coordinate(self.pickup_lat, self.pickup_lng),
            destination=Coordinate(self.destination_lat, self.destination_lng),
            urgency=self.urgency,
        )


class TripCreateRequest(EstimateRequest):
    rider_id: Optional[str] = Field(None, max_length=64)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


class DriverLocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class DriverAvailabilityUpdate(BaseModel):
    is_available: bool
    is_online: Optional[bool] = None


# ── Responses ─────────────────────────────────────────────────────────


class NotedHazardResponse(BaseModel):
    id: int
    category: HazardCategory
    severity: int


class RouteEstimateResponse(BaseModel):
    waypoints: list[tuple[float, float]]
    distance_km: float
    duration_min: int
    estimated_fare: float
    hazard_zones_noted: list[NotedHazardResponse] = []
    safety_score: int
    fallback: bool = False

    @classmethod
    def from_estimate(cls, estimate: RouteEstimate) -> RouteEstimateResponse:
        return cls(
            waypoints=[p.as_tuple() for p in estimate.waypoints],
            distance_km=estimate.distance_km,
            duration_min=estimate.duration_min,
            estimated_fare=estimate.estimated_fare,
            hazard_zones_noted=[
                NotedHazardResponse(id=h.id, category=h.category, severity=h.severity)
                for h in estimate.hazard_zones_noted
            ],
            safety_score=estimate.safety_score,
            fallback=estimate.fallback,
        )


class TripResponse(BaseModel):
    id: int
    rider_id: Optional[str] = None
    pickup_lat: float
    pickup_lng: float
    destination_lat: float
    destination_lng: float
    urgency: Urgency
    status: TripStatus
    driver_id: Optional[int] = None
    distance_km: Optional[float] = None
    duration_min: Optional[int] = None
    estimated_fare: Optional[float] = None
    safety_score: Optional[int] = None
    waypoints: list[tuple[float, float]] = []
    hazard_zones_noted: list[NotedHazardResponse] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_trip(cls, trip: Trip) -> TripResponse:
        return cls(
            id=trip.id,
            rider_id=trip.rider_id,
            pickup_lat=trip.pickup.latitude,
            pickup_lng=trip.pickup.longitude,
            destination_lat=trip.destination.latitude,
            destination_lng=trip.destination.longitude,
            urgency=trip.urgency,
            status=trip.status,
            driver_id=trip.driver_id,
            distance_km=trip.distance_km,
            duration_min=trip.duration_min,
            estimated_fare=trip.estimated_fare,
            safety_score=trip.safety_score,
            waypoints=[p.as_tuple() for p in trip.waypoints],
            hazard_zones_noted=[
                NotedHazardResponse(id=h.id, category=h.category, severity=h.severity)
                for h in trip.hazard_zones_noted
            ],
            created_at=trip.created_at,
        )


class DriverResponse(BaseModel):
    id: int
    lat: Optional[float] = None
    lng: Optional[float] = None
    is_available: bool
    is_online: bool
    rating: float
    total_trips: int
    emergency_equipment: list[str] = []
    version: int

    @classmethod
    def from_snapshot(cls, driver: DriverSnapshot) -> DriverResponse:
        location = driver.location
        return cls(
            id=driver.id,
            lat=location.latitude if location else None,
            lng=location.longitude if location else None,
            is_available=driver.is_available,
            is_online=driver.is_online,
            rating=driver.rating,
            total_trips=driver.total_trips,
            emergency_equipment=sorted(driver.emergency_equipment),
            version=driver.version,
        )


class HazardZoneResponse(BaseModel):
    id: int
    name: str
    category: HazardCategory
    severity: int
    center_lat: float
    center_lng: float
    radius_km: float
    alert_level: AlertLevel
    is_active: bool
    last_updated: Optional[datetime] = None

    @classmethod
    def from_zone(cls, zone: HazardZone) -> HazardZoneResponse:
        return cls(
            id=zone.id,
            name=zone.name,
            category=zone.category,
            severity=zone.severity,
            center_lat=zone.center.latitude,
            center_lng=zone.center.longitude,
            radius_km=zone.radius_km,
            alert_level=zone.alert_level,
            is_active=zone.active,
            last_updated=zone.last_updated,
        )


class HazardSyncResponse(BaseModel):
    active_zones: int
    deactivated: int
    refreshed_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str = "ok"
