"""Outbound event schemas and channel names for driver assignment."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .enums import Urgency

# Channel names
CHANNEL_TRIP_ASSIGNMENTS = "trip-assignments"


def driver_channel(driver_id: int) -> str:
    return f"driver:{driver_id}:assignments"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentEvent(BaseModel):
    """Emitted once per successful commit; delivered to the driver's client."""

    trip_id: int
    driver_id: int
    pickup: tuple[float, float]
    destination: tuple[float, float]
    urgency: Urgency
    estimated_fare: float
    timestamp: datetime = Field(default_factory=_utcnow)
