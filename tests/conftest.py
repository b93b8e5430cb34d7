"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production ORM models are plain
lat/lng + H3 columns, so they are created on SQLite unchanged.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rescue_dispatch.domain.entities import Coordinate, DriverSnapshot, HazardZone
from rescue_dispatch.domain.enums import HazardCategory
from rescue_dispatch.infrastructure.database import Base, session_factory_for
from rescue_dispatch.infrastructure import models  # noqa: F401  (registers tables)
from rescue_dispatch.infrastructure.events import InMemoryAssignmentPublisher
from rescue_dispatch.infrastructure.memory_store import InMemoryDispatchStore
from rescue_dispatch.infrastructure.repositories import SqlDispatchStore


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# Bangalore city centre; most scenarios are laid out around it.
PICKUP = Coordinate(12.97, 77.59)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables on a fresh in-memory DB, yield a session factory, then drop."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield session_factory_for(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_store(session_factory) -> SqlDispatchStore:
    return SqlDispatchStore(session_factory, h3_resolution=6, directory_radius_km=20.0)


@pytest.fixture
def memory_store() -> InMemoryDispatchStore:
    return InMemoryDispatchStore()


@pytest.fixture
def publisher() -> InMemoryAssignmentPublisher:
    return InMemoryAssignmentPublisher()


# ── Factories ─────────────────────────────────────────────────────────


@pytest.fixture
def make_zone():
    def _make(
        zone_id=1,
        lat=PICKUP.latitude,
        lng=PICKUP.longitude,
        radius_km=2.0,
        severity=8,
        category=HazardCategory.FLOOD,
        active=True,
    ) -> HazardZone:
        return HazardZone(
            id=zone_id,
            category=category,
            severity=severity,
            center=Coordinate(lat, lng),
            radius_km=radius_km,
            active=active,
            name=f"zone-{zone_id}",
        )

    return _make


@pytest.fixture
def make_driver():
    def _make(driver_id=1, lat=None, lng=None, **kwargs) -> DriverSnapshot:
        location = Coordinate(lat, lng) if lat is not None else None
        return DriverSnapshot(id=driver_id, location=location, **kwargs)

    return _make
