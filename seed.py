"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 12 sample drivers (Bangalore and Mumbai, some with emergency kit)
  - 5 sample hazard zones (floods, a fire, a storm cell)
"""

import asyncio

from sqlalchemy import text

from rescue_dispatch.config import settings
from rescue_dispatch.domain.distance import driver_cell
from rescue_dispatch.domain.enums import AlertLevel, HazardCategory
from rescue_dispatch.infrastructure.database import async_session_factory, engine
from rescue_dispatch.infrastructure.models import DriverModel, HazardZoneModel


DRIVERS = [
    # Bangalore, around MG Road
    {"name": "Aarav Sharma", "lat": 12.9716, "lng": 77.5946, "rating": 4.8, "kit": ["first_aid"]},
    {"name": "Priya Patel", "lat": 12.9352, "lng": 77.6245, "rating": 4.9, "kit": []},
    {"name": "Rohan Mehta", "lat": 12.9784, "lng": 77.6408, "rating": 4.5, "kit": ["first_aid", "oxygen"]},
    {"name": "Sneha Gupta", "lat": 13.0358, "lng": 77.5970, "rating": 4.7, "kit": []},
    {"name": "Vikram Singh", "lat": 12.9141, "lng": 77.6101, "rating": 4.6, "kit": ["stretcher"]},
    {"name": "Ananya Reddy", "lat": 12.9987, "lng": 77.5921, "rating": 4.9, "kit": []},
    # Mumbai
    {"name": "Karan Joshi", "lat": 19.0896, "lng": 72.8656, "rating": 4.3, "kit": []},
    {"name": "Meera Nair", "lat": 19.0760, "lng": 72.8777, "rating": 4.8, "kit": ["first_aid"]},
    {"name": "Arjun Kumar", "lat": 19.1176, "lng": 72.9060, "rating": 4.4, "kit": []},
    {"name": "Diya Iyer", "lat": 19.0540, "lng": 72.8400, "rating": 4.7, "kit": ["oxygen"]},
    {"name": "Kabir Das", "lat": 19.0200, "lng": 72.8500, "rating": 4.2, "kit": []},
    {"name": "Isha Rao", "lat": 19.1330, "lng": 72.9150, "rating": 4.6, "kit": ["first_aid"]},
]

HAZARDS = [
    {
        "name": "Mumbai Monsoon Flooding",
        "category": HazardCategory.FLOOD, "severity": 8,
        "lat": 19.0760, "lng": 72.8777, "radius_km": 15.0,
        "alert_level": AlertLevel.HIGH,
        "description": "Heavy monsoon rainfall causing waterlogging in low-lying areas",
    },
    {
        "name": "Bellandur Lake Overflow",
        "category": HazardCategory.FLOOD, "severity": 6,
        "lat": 12.9352, "lng": 77.6245, "radius_km": 3.0,
        "alert_level": AlertLevel.MEDIUM,
        "description": "Lake overflow flooding outer ring road underpasses",
    },
    {
        "name": "Peenya Industrial Fire",
        "category": HazardCategory.FIRE, "severity": 9,
        "lat": 13.0285, "lng": 77.5197, "radius_km": 2.0,
        "alert_level": AlertLevel.CRITICAL,
        "description": "Warehouse fire, roads closed around the industrial area",
    },
    {
        "name": "Whitefield Storm Cell",
        "category": HazardCategory.STORM, "severity": 4,
        "lat": 12.9698, "lng": 77.7500, "radius_km": 5.0,
        "alert_level": AlertLevel.LOW,
        "description": "Thunderstorm with fallen trees reported",
    },
    {
        "name": "Mithi River Banks",
        "category": HazardCategory.FLOOD, "severity": 7,
        "lat": 19.0660, "lng": 72.8580, "radius_km": 2.5,
        "alert_level": AlertLevel.HIGH,
        "description": "River level above danger mark",
    },
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Drivers ───────────────────────────────────────────────────
        for d in DRIVERS:
            session.add(
                DriverModel(
                    name=d["name"],
                    current_lat=d["lat"],
                    current_lng=d["lng"],
                    h3_cell=driver_cell(d["lat"], d["lng"], settings.h3_resolution),
                    is_available=True,
                    is_online=True,
                    rating=d["rating"],
                    emergency_equipment=d["kit"],
                )
            )
        await session.flush()
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Hazard zones ──────────────────────────────────────────────
        for h in HAZARDS:
            session.add(
                HazardZoneModel(
                    name=h["name"],
                    category=h["category"],
                    severity=h["severity"],
                    center_lat=h["lat"],
                    center_lng=h["lng"],
                    radius_km=h["radius_km"],
                    alert_level=h["alert_level"],
                    description=h["description"],
                    is_active=True,
                )
            )
        await session.flush()
        print(f"  Created {len(HAZARDS)} hazard zones")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
