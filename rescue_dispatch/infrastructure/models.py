"""
SQLAlchemy ORM models.

Tables
------
* ``drivers``       -- versioned driver state (location, availability)
* ``hazard_zones``  -- circular hazard areas kept fresh by the sync job
* ``trips``         -- trip requests with their route estimate

Indexes
-------
* **B-Tree** on ``h3_cell`` so the driver directory can prefilter by the
  H3 cells around a pickup instead of scanning every driver.
* **B-Tree** on availability flags, ``status``, ``driver_id``,
  ``is_active`` and ``idempotency_key`` for the dispatch queries.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from rescue_dispatch.domain.enums import (
    AlertLevel,
    HazardCategory,
    TripStatus,
    Urgency,
)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, default=5.0, nullable=False)
    total_trips = Column(Integer, default=0, nullable=False)
    emergency_equipment = Column(JSON, default=list, nullable=False)
    version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_drivers_cell", "h3_cell"),
        Index("idx_drivers_available", "is_available", "is_online"),
    )


class HazardZoneModel(Base):
    __tablename__ = "hazard_zones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    category = Column(Enum(HazardCategory), nullable=False)
    severity = Column(Integer, nullable=False)
    center_lat = Column(Float, nullable=False)
    center_lng = Column(Float, nullable=False)
    radius_km = Column(Float, nullable=False)
    alert_level = Column(Enum(AlertLevel), default=AlertLevel.MEDIUM, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)
    external_id = Column(String(120), nullable=True)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_hazard_zones_active", "is_active"),
        Index("idx_hazard_zones_severity", "severity"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(String(64), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    urgency = Column(Enum(Urgency), default=Urgency.NORMAL, nullable=False)

    status = Column(Enum(TripStatus), default=TripStatus.PENDING, nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)

    # Route estimate, copied from the estimator
    distance_km = Column(Float, nullable=True)
    duration_min = Column(Integer, nullable=True)
    estimated_fare = Column(Float, nullable=True)
    safety_score = Column(Integer, nullable=True)
    waypoints = Column(JSON, nullable=True)
    hazard_zones_noted = Column(JSON, nullable=True)

    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_idempotency", "idempotency_key"),
    )
