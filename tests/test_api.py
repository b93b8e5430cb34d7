"""
Integration tests for the REST API endpoints.

The store and publisher dependencies are overridden with the in-memory
implementations so the routes run without PostgreSQL or Redis, and the
hazard refresher is patched out.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rescue_dispatch.api.dependencies import get_hazards, get_publisher, get_store
from rescue_dispatch.api.middleware import limiter
from rescue_dispatch.domain.errors import TransientIOError
from rescue_dispatch.infrastructure.memory_store import InMemoryDispatchStore
from rescue_dispatch.workers.hazard_sync import HazardSnapshotCache

TRIP_BODY = {
    "pickup_lat": 12.97,
    "pickup_lng": 77.59,
    "destination_lat": 13.02,
    "destination_lng": 77.62,
}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def store(make_driver, make_zone) -> InMemoryDispatchStore:
    return InMemoryDispatchStore(
        hazards=[
            make_zone(zone_id=1, lat=12.979, lng=77.59, radius_km=0.5, severity=8),
            make_zone(zone_id=2, lat=19.0760, lng=72.8777, radius_km=15.0, severity=8),
        ],
        drivers=[make_driver(1, 12.979, 77.59), make_driver(2, 13.006, 77.59)],
    )


@pytest_asyncio.fixture
async def app(store, publisher):
    with (
        patch(
            "rescue_dispatch.workers.hazard_sync.start_sync_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "rescue_dispatch.workers.hazard_sync.stop_sync_loop",
            new_callable=AsyncMock,
        ),
    ):
        from rescue_dispatch.api.app import create_app

        app = create_app()
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_publisher] = lambda: publisher
        limiter.reset()
        yield app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_stats(client: AsyncClient):
    resp = await client.get("/api/v1/admin/stats")
    assert resp.status_code == 200
    assert resp.json() == {"available_drivers": 2, "active_hazards": 2}


@pytest.mark.asyncio
async def test_estimate(client: AsyncClient):
    resp = await client.post("/api/v1/trips/estimate", json=TRIP_BODY)
    assert resp.status_code == 200
    data = resp.json()
    assert data["safety_score"] == 10
    assert data["hazard_zones_noted"] == []
    assert data["waypoints"][0] == [12.97, 77.59]
    assert data["waypoints"][-1] == [13.02, 77.62]
    assert data["fallback"] is False


@pytest.mark.asyncio
async def test_estimate_notes_hazard_at_destination(client: AsyncClient):
    body = {**TRIP_BODY, "destination_lat": 12.979, "destination_lng": 77.59}
    resp = await client.post("/api/v1/trips/estimate", json=body)
    data = resp.json()
    assert [h["id"] for h in data["hazard_zones_noted"]] == [1]
    assert data["safety_score"] == 8


@pytest.mark.asyncio
async def test_estimate_rejects_bad_coordinates(client: AsyncClient):
    resp = await client.post("/api/v1/trips/estimate", json={**TRIP_BODY, "pickup_lat": 95})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_trip_returns_202(client: AsyncClient, publisher):
    resp = await client.post("/api/v1/trips", json={**TRIP_BODY, "rider_id": "r-1"})
    assert resp.status_code == 202
    data = resp.json()
    assert data["status"] == "accepted"
    assert data["driver_id"] == 1
    assert data["rider_id"] == "r-1"
    assert len(publisher.events) == 1


@pytest.mark.asyncio
async def test_emergency_trip_skips_flooded_driver(client: AsyncClient):
    resp = await client.post("/api/v1/trips", json={**TRIP_BODY, "urgency": "emergency"})
    assert resp.status_code == 202
    assert resp.json()["driver_id"] == 2


@pytest.mark.asyncio
async def test_trip_without_driver_stays_pending(client: AsyncClient):
    body = {
        "pickup_lat": 28.6139,
        "pickup_lng": 77.2090,
        "destination_lat": 28.7041,
        "destination_lng": 77.1025,
    }
    resp = await client.post("/api/v1/trips", json=body)
    assert resp.status_code == 202
    assert resp.json()["status"] == "pending"
    assert resp.json()["driver_id"] is None


@pytest.mark.asyncio
async def test_get_trip(client: AsyncClient):
    create_resp = await client.post("/api/v1/trips", json=TRIP_BODY)
    trip_id = create_resp.json()["id"]
    resp = await client.get(f"/api/v1/trips/{trip_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == trip_id


@pytest.mark.asyncio
async def test_get_trip_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/trips/9999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cancel_trip_frees_driver(client: AsyncClient, store):
    create_resp = await client.post("/api/v1/trips", json=TRIP_BODY)
    trip_id = create_resp.json()["id"]

    resp = await client.patch(f"/api/v1/trips/{trip_id}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert (await store.get_driver(1)).is_available


@pytest.mark.asyncio
async def test_cancel_already_cancelled_trip_fails(client: AsyncClient):
    create_resp = await client.post("/api/v1/trips", json=TRIP_BODY)
    trip_id = create_resp.json()["id"]
    await client.patch(f"/api/v1/trips/{trip_id}/cancel")
    resp = await client.patch(f"/api/v1/trips/{trip_id}/cancel")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_cancel_unknown_trip(client: AsyncClient):
    resp = await client.patch("/api/v1/trips/9999/cancel")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_idempotency_key(client: AsyncClient):
    body = {**TRIP_BODY, "idempotency_key": "unique-key-123"}
    resp1 = await client.post("/api/v1/trips", json=body)
    resp2 = await client.post("/api/v1/trips", json=body)
    assert resp1.status_code == 202
    assert resp2.status_code == 202
    assert resp1.json()["id"] == resp2.json()["id"]


@pytest.mark.asyncio
async def test_redispatch_after_driver_comes_online(client: AsyncClient, store):
    await store.set_availability(1, False)
    await store.set_availability(2, False)
    trip_id = (await client.post("/api/v1/trips", json=TRIP_BODY)).json()["id"]

    await client.patch("/api/v1/drivers/2/availability", json={"is_available": True})
    resp = await client.post(f"/api/v1/trips/{trip_id}/dispatch")
    assert resp.status_code == 200
    assert resp.json()["driver_id"] == 2


@pytest.mark.asyncio
async def test_update_driver_location(client: AsyncClient):
    resp = await client.patch("/api/v1/drivers/1/location", json={"lat": 12.95, "lng": 77.6})
    assert resp.status_code == 200
    data = resp.json()
    assert data["lat"] == 12.95
    assert data["version"] == 1


@pytest.mark.asyncio
async def test_update_unknown_driver(client: AsyncClient):
    resp = await client.patch("/api/v1/drivers/99/location", json={"lat": 12.95, "lng": 77.6})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_driver_holding_trip_cannot_go_available(client: AsyncClient):
    await client.post("/api/v1/trips", json=TRIP_BODY)
    resp = await client.patch("/api/v1/drivers/1/availability", json={"is_available": True})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_list_hazards(client: AsyncClient):
    resp = await client.get("/api/v1/hazards")
    assert resp.status_code == 200
    assert {z["id"] for z in resp.json()} == {1, 2}


@pytest.mark.asyncio
async def test_nearby_hazards(client: AsyncClient):
    resp = await client.get(
        "/api/v1/hazards/nearby", params={"lat": 19.08, "lng": 72.88, "radius_km": 5}
    )
    assert resp.status_code == 200
    assert [z["id"] for z in resp.json()] == [2]


@pytest.mark.asyncio
async def test_get_hazard(client: AsyncClient):
    resp = await client.get("/api/v1/hazards/2")
    assert resp.status_code == 200
    assert resp.json()["severity"] == 8
    assert resp.json()["center_lat"] == 19.0760


@pytest.mark.asyncio
async def test_get_unknown_hazard_returns_404(client: AsyncClient):
    resp = await client.get("/api/v1/hazards/99")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_sync_hazards_runs_refresh_cycle(app, store, client: AsyncClient):
    app.state.hazard_cache = HazardSnapshotCache(store)
    with patch(
        "rescue_dispatch.workers.hazard_sync.run_sync_cycle",
        new=AsyncMock(return_value=1),
    ) as cycle:
        resp = await client.post("/api/v1/hazards/sync")

    assert resp.status_code == 200
    data = resp.json()
    assert data["deactivated"] == 1
    assert data["active_zones"] == 2
    cycle.assert_awaited_once_with(app.state.hazard_cache)


@pytest.mark.asyncio
async def test_sync_hazards_without_refresher_returns_503(client: AsyncClient):
    resp = await client.post("/api/v1/hazards/sync")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_hazard_outage_returns_503(app, client: AsyncClient):
    failing = AsyncMock()
    failing.active_hazards = AsyncMock(side_effect=TransientIOError("feed down"))
    app.dependency_overrides[get_hazards] = lambda: failing

    resp = await client.post("/api/v1/trips", json=TRIP_BODY)
    assert resp.status_code == 503
