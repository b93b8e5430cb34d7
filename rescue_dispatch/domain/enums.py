"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses.
# ACCEPTED -> PENDING is the dispatch release path (driver handed back).
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.PENDING: {TripStatus.ACCEPTED, TripStatus.CANCELLED},
    TripStatus.ACCEPTED: {
        TripStatus.EN_ROUTE,
        TripStatus.PENDING,
        TripStatus.CANCELLED,
    },
    TripStatus.EN_ROUTE: {TripStatus.ARRIVED, TripStatus.CANCELLED},
    TripStatus.ARRIVED: {TripStatus.IN_PROGRESS, TripStatus.CANCELLED},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

# Statuses in which a trip holds its driver.
ACTIVE_STATUSES = frozenset(
    {
        TripStatus.ACCEPTED,
        TripStatus.EN_ROUTE,
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
    }
)


class Urgency(str, enum.Enum):
    NORMAL = "normal"
    EMERGENCY = "emergency"


class HazardCategory(str, enum.Enum):
    FLOOD = "flood"
    FIRE = "fire"
    EARTHQUAKE = "earthquake"
    STORM = "storm"
    OTHER = "other"


class AlertLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
