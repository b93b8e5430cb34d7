"""
Domain entities and value objects.

Patterns used
-------------
- **Value Objects** (``Coordinate``, ``HazardZone``, ``DriverSnapshot``,
  ``RouteEstimate``) are frozen dataclasses: a snapshot handed to the
  estimator or matcher cannot change under it.
- **State Pattern** on ``Trip``: enforces valid lifecycle transitions
  (pending -> accepted -> en_route -> arrived -> in_progress -> completed,
  cancelled from any non-terminal state).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Optional

from .enums import (
    TERMINAL_STATUSES,
    TRIP_TRANSITIONS,
    AlertLevel,
    HazardCategory,
    TripStatus,
    Urgency,
)
from .errors import InputError


class InvalidStateTransition(Exception):
    """Raised when a trip status change violates the state machine."""


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_coordinate(latitude: float, longitude: float) -> None:
    """Raise ``InputError`` unless both values are finite and in range."""
    if not (_is_number(latitude) and _is_number(longitude)):
        raise InputError(f"Coordinates must be numeric: ({latitude!r}, {longitude!r})")
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InputError(f"Coordinates must be finite: ({latitude}, {longitude})")
    if not -90.0 <= latitude <= 90.0:
        raise InputError(f"Latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise InputError(f"Longitude out of range: {longitude}")


def clamp_severity(value: float) -> int:
    """Round a raw feed severity (e.g. a quake magnitude) into [1, 10]."""
    return max(1, min(10, int(round(value))))


def clamp_rating(value: float) -> float:
    return max(0.0, min(5.0, float(value)))


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        validate_coordinate(self.latitude, self.longitude)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class HazardZone:
    id: int
    category: HazardCategory
    severity: int
    center: Coordinate
    radius_km: float
    alert_level: AlertLevel = AlertLevel.MEDIUM
    active: bool = True
    last_updated: Optional[datetime] = None
    name: str = ""
    description: Optional[str] = None
    external_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.severity, int) or isinstance(self.severity, bool):
            raise InputError(f"Severity must be an integer: {self.severity!r}")
        if not 1 <= self.severity <= 10:
            raise InputError(f"Severity out of range [1, 10]: {self.severity}")
        if not _is_number(self.radius_km) or not math.isfinite(self.radius_km):
            raise InputError(f"Radius must be a finite number: {self.radius_km!r}")
        if self.radius_km < 0:
            raise InputError(f"Radius must be >= 0: {self.radius_km}")


@dataclass(frozen=True)
class DriverSnapshot:
    id: int
    location: Optional[Coordinate] = None
    is_available: bool = True
    is_online: bool = True
    rating: float = 5.0
    total_trips: int = 0
    emergency_equipment: frozenset[str] = frozenset()
    version: int = 0

    def __post_init__(self) -> None:
        if not _is_number(self.rating) or not 0.0 <= self.rating <= 5.0:
            raise InputError(f"Rating out of range [0, 5]: {self.rating!r}")
        if not isinstance(self.total_trips, int) or isinstance(self.total_trips, bool):
            raise InputError(f"Total trips must be an integer: {self.total_trips!r}")
        if self.total_trips < 0:
            raise InputError(f"Total trips must be >= 0: {self.total_trips}")

    @property
    def is_eligible(self) -> bool:
        return self.is_online and self.is_available and self.location is not None


@dataclass(frozen=True)
class TripRequest:
    pickup: Coordinate
    destination: Coordinate
    urgency: Urgency = Urgency.NORMAL


@dataclass(frozen=True)
class NotedHazard:
    id: int
    category: HazardCategory
    severity: int


@dataclass(frozen=True)
class RouteEstimate:
    waypoints: tuple[Coordinate, ...]
    distance_km: float
    duration_min: int
    estimated_fare: float
    hazard_zones_noted: tuple[NotedHazard, ...] = ()
    safety_score: int = 10
    fallback: bool = False


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Trip:
    id: Optional[int] = None
    rider_id: Optional[str] = None
    pickup: Coordinate = field(default_factory=lambda: Coordinate(0, 0))
    destination: Coordinate = field(default_factory=lambda: Coordinate(0, 0))
    urgency: Urgency = Urgency.NORMAL
    status: TripStatus = TripStatus.PENDING
    driver_id: Optional[int] = None
    distance_km: Optional[float] = None
    duration_min: Optional[int] = None
    estimated_fare: Optional[float] = None
    waypoints: list[Coordinate] = field(default_factory=list)
    hazard_zones_noted: list[NotedHazard] = field(default_factory=list)
    safety_score: Optional[int] = None
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def request(self) -> TripRequest:
        return TripRequest(self.pickup, self.destination, self.urgency)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, new_status: TripStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = TRIP_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def apply_estimate(self, estimate: RouteEstimate) -> None:
        """Copy the estimator's output into the trip record."""
        self.distance_km = estimate.distance_km
        self.duration_min = estimate.duration_min
        self.estimated_fare = estimate.estimated_fare
        self.waypoints = list(estimate.waypoints)
        self.hazard_zones_noted = list(estimate.hazard_zones_noted)
        self.safety_score = estimate.safety_score
