"""HTTP tests for the admin and storefront routers.

The app is created without entering its lifespan, so no database pool is
opened; repositories are swapped for the in-memory fake.
"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.core.dependencies import get_timer_repository
from api.services.auth_service import AuthService
from factories import OTHER_SHOP, SHOP, make_evergreen, make_fixed, products

SECRET = "app-secret-for-tests-0123456789abcdef"
DEV_SHOP = "test-shop.myshopify.com"


@pytest.fixture
def client(repo):
    app = create_app()
    app.dependency_overrides[get_timer_repository] = lambda: repo
    return TestClient(app)


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("SHOPIFY_API_SECRET", SECRET)
    monkeypatch.setenv("SHOPIFY_API_KEY", "app-key")


def bearer(shop):
    token = AuthService(api_secret=SECRET, api_key="app-key").create_session_token(shop)
    return {"Authorization": f"Bearer {token}"}


def live_window():
    now = datetime.now(UTC)
    return {"start": now - timedelta(hours=1), "end": now + timedelta(hours=1)}


FIXED_BODY = {
    "name": "Weekend sale",
    "kind": "fixed",
    "start_at": "2025-06-01T00:00:00Z",
    "end_at": "2025-06-03T00:00:00Z",
    "appearance": {"headline": "Ends Sunday"},
}


class TestServiceEndpoints:
    def test_root_and_ping(self, client):
        assert client.get("/").json()["status"] == "running"
        assert client.get("/ping").text == "pong"

    def test_health_without_database(self, client):
        body = client.get("/api/health").json()
        assert body["database"] == "disconnected"


class TestTimerCrud:
    def test_create_read_update_toggle_delete(self, client, repo):
        created = client.post("/api/timers", json=FIXED_BODY)
        assert created.status_code == 201
        timer = created.json()
        assert timer["shop"] == DEV_SHOP
        assert timer["appearance"]["headline"] == "Ends Sunday"
        assert timer["active"] is True
        timer_id = timer["id"]

        assert client.get(f"/api/timers/{timer_id}").json()["name"] == "Weekend sale"

        updated = client.put(f"/api/timers/{timer_id}", json={"name": "Long weekend"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Long weekend"
        assert updated.json()["appearance"]["headline"] == "Ends Sunday"

        toggled = client.patch(f"/api/timers/{timer_id}/toggle")
        assert toggled.json()["active"] is False
        assert toggled.json()["status"] == "inactive"
        explicit = client.patch(f"/api/timers/{timer_id}/toggle", json={"active": True})
        assert explicit.json()["active"] is True

        assert client.delete(f"/api/timers/{timer_id}").status_code == 204
        assert client.get(f"/api/timers/{timer_id}").status_code == 404
        assert client.delete(f"/api/timers/{timer_id}").status_code == 404
        assert repo.timers == {}

    def test_list_with_pagination(self, client, repo):
        for i in range(3):
            timer = make_evergreen(shop=DEV_SHOP, created_at=datetime(2025, 1, 1 + i, tzinfo=UTC))
            repo.timers[timer.id] = timer
        body = client.get("/api/timers", params={"limit": 2}).json()
        assert len(body["timers"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert all(t["status"] == "active" for t in body["timers"])

    def test_validation_errors(self, client):
        response = client.post("/api/timers", json={"name": "", "kind": "evergreen", "duration_minutes": 0})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "Validation failed"
        assert {e["field"] for e in detail["errors"]} == {"name", "duration_minutes"}

    def test_kind_change_rejected(self, client):
        timer_id = client.post("/api/timers", json=FIXED_BODY).json()["id"]
        response = client.put(f"/api/timers/{timer_id}", json={"kind": "evergreen", "duration_minutes": 5})
        assert response.status_code == 400

    def test_unknown_timer(self, client):
        assert client.get(f"/api/timers/{uuid.uuid4()}").status_code == 404
        assert client.get("/api/timers/not-a-uuid").status_code == 404
        assert client.patch(f"/api/timers/{uuid.uuid4()}/toggle").status_code == 404

    def test_preview(self, client, repo):
        timer = make_fixed(shop=DEV_SHOP, targeting=products("p1"), **live_window())
        repo.timers[timer.id] = timer
        response = client.post(f"/api/timers/{timer.id}/preview", json={"product_id": "p1"})
        assert response.json() == {"status": "active", "matches": True, "eligible": True}


class TestAdminAuth:
    def test_production_requires_token(self, production, client):
        assert client.get("/api/timers").status_code == 401

    def test_invalid_token(self, production, client):
        response = client.get("/api/timers", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_token_scopes_to_shop(self, production, client, repo):
        own = make_fixed(shop=SHOP)
        foreign = make_fixed(shop=OTHER_SHOP)
        repo.timers.update({own.id: own, foreign.id: foreign})

        body = client.get("/api/timers", headers=bearer(SHOP)).json()
        assert [t["id"] for t in body["timers"]] == [own.id]
        assert client.get(f"/api/timers/{foreign.id}", headers=bearer(SHOP)).status_code == 404


class TestStorefront:
    def test_requires_shop(self, client):
        response = client.get("/api/storefront/timer")
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Shop parameter is required"}

    def test_returns_minimal_payload(self, client, repo):
        timer = make_fixed(targeting=products("p1"), **live_window())
        repo.timers[timer.id] = timer

        response = client.get(
            "/api/storefront/timer", params={"shop": SHOP, "productId": "p1", "collectionIds": "c1,c2"}
        )
        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, max-age=60"
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert set(data) == {"id", "kind", "appearance", "start_at", "end_at"}
        assert data["id"] == timer.id
        assert data["kind"] == "fixed"

    def test_evergreen_payload_carries_duration(self, client, repo):
        timer = make_evergreen(duration_minutes=90)
        repo.timers[timer.id] = timer
        data = client.get("/api/storefront/timer", params={"shop": SHOP}).json()["data"]
        assert data["duration_minutes"] == 90
        assert "end_at" not in data

    def test_no_matching_timer(self, client, repo):
        timer = make_fixed(targeting=products("p1"), **live_window())
        repo.timers[timer.id] = timer
        response = client.get("/api/storefront/timer", params={"shop": SHOP, "productId": "p2"})
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "No active timer found"}
        assert response.headers["cache-control"] == "public, max-age=60"

    def test_backend_failure_is_short_cached(self, client, repo):
        repo.fail_reads = True
        response = client.get("/api/storefront/timer", params={"shop": SHOP})
        assert response.status_code == 500
        assert response.headers["cache-control"] == "public, max-age=30"

    def test_database_not_ready(self):
        response = TestClient(create_app()).get("/api/storefront/timer", params={"shop": SHOP})
        assert response.status_code == 503

    def test_impression_recorded(self, client, repo):
        timer = make_evergreen()
        repo.timers[timer.id] = timer
        response = client.post(f"/api/storefront/timer/{timer.id}/impression", json={"shop": SHOP})
        assert response.json() == {"success": True, "message": "Impression recorded"}
        assert repo.timers[timer.id].impressions == 1

    def test_impression_without_body(self, client, repo):
        timer = make_evergreen()
        repo.timers[timer.id] = timer
        assert client.post(f"/api/storefront/timer/{timer.id}/impression").status_code == 200

    def test_impression_bad_and_unknown_ids(self, client):
        assert client.post("/api/storefront/timer/123/impression").status_code == 400
        assert client.post(f"/api/storefront/timer/{uuid.uuid4()}/impression").status_code == 404

    def test_impression_failure_is_swallowed(self, client, repo):
        async def broken(timer_id, shop=None):
            raise ConnectionError("db down")

        repo.increment_impressions = broken
        response = client.post(f"/api/storefront/timer/{uuid.uuid4()}/impression")
        assert response.status_code == 200

    def test_storefront_health(self, client):
        assert client.get("/api/storefront/health").json()["status"] == "healthy"
