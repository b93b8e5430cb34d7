"""Initial schema: drivers, hazard zones and trips.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TRIP_STATUSES = (
    "PENDING",
    "ACCEPTED",
    "EN_ROUTE",
    "ARRIVED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
)


def upgrade() -> None:
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("is_available", sa.Boolean, default=True, nullable=False),
        sa.Column("is_online", sa.Boolean, default=False, nullable=False),
        sa.Column("rating", sa.Float, default=5.0, nullable=False),
        sa.Column("total_trips", sa.Integer, default=0, nullable=False),
        sa.Column("emergency_equipment", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, default=0, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_cell", "drivers", ["h3_cell"])
    op.create_index("idx_drivers_available", "drivers", ["is_available", "is_online"])

    # ── hazard_zones ──────────────────────────────────────────────────
    op.create_table(
        "hazard_zones",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "category",
            sa.Enum("FLOOD", "FIRE", "EARTHQUAKE", "STORM", "OTHER", name="hazardcategory"),
            nullable=False,
        ),
        sa.Column("severity", sa.Integer, nullable=False),
        sa.Column("center_lat", sa.Float, nullable=False),
        sa.Column("center_lng", sa.Float, nullable=False),
        sa.Column("radius_km", sa.Float, nullable=False),
        sa.Column(
            "alert_level",
            sa.Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="alertlevel"),
            default="MEDIUM",
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean, default=True, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("external_id", sa.String(120), nullable=True),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_hazard_zones_active", "hazard_zones", ["is_active"])
    op.create_index("idx_hazard_zones_severity", "hazard_zones", ["severity"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rider_id", sa.String(64), nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column(
            "urgency",
            sa.Enum("NORMAL", "EMERGENCY", name="urgency"),
            default="NORMAL",
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*TRIP_STATUSES, name="tripstatus"),
            default="PENDING",
            nullable=False,
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("duration_min", sa.Integer, nullable=True),
        sa.Column("estimated_fare", sa.Float, nullable=True),
        sa.Column("safety_score", sa.Integer, nullable=True),
        sa.Column("waypoints", sa.JSON, nullable=True),
        sa.Column("hazard_zones_noted", sa.JSON, nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_idempotency", "trips", ["idempotency_key"])


def downgrade() -> None:
    op.drop_table("trips")
    op.drop_table("hazard_zones")
    op.drop_table("drivers")
    op.execute("DROP TYPE IF EXISTS tripstatus")
    op.execute("DROP TYPE IF EXISTS urgency")
    op.execute("DROP TYPE IF EXISTS alertlevel")
    op.execute("DROP TYPE IF EXISTS hazardcategory")
