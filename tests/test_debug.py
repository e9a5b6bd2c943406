"""
Tests for the debug surface and its HTTP server.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from tripcache.services.cache import CacheNamespaceConfig
from tripcache.services.debug import CacheDebugSurface
from tripcache.services.events import EventBus
from tripcache.services.orchestrator import RequestOrchestrator
from tripcache.services.registry import CacheRegistry
from tripcache.api.debug_server import create_debug_server


@pytest.fixture
def surface():
    registry = CacheRegistry(events=EventBus())
    registry.register_namespace(
        CacheNamespaceConfig(name="places", ttl=timedelta(minutes=5), max_size=10)
    )
    registry.register_namespace(
        CacheNamespaceConfig(name="chat", ttl=timedelta(minutes=5), user_scoped=True)
    )
    return CacheDebugSurface(RequestOrchestrator(registry))


@pytest.fixture
def client(surface):
    with TestClient(create_debug_server(surface)) as client:
        yield client


class TestCacheDebugSurface:
    """Test CacheDebugSurface."""

    @pytest.mark.asyncio
    async def test_debug_info_and_analytics(self, surface):
        await surface.set("places", "lisbon", {"lat": 38.72})
        await surface.get("places", "lisbon")
        await surface.get("places", "porto")

        info = surface.get_debug_info()
        analytics = surface.get_analytics("places")

        assert info["current_user"] is None
        assert info["total_entries"] == 1
        assert info["namespaces"] == ["places", "chat"]
        assert set(info["requests"]) >= {"deduplicator", "debouncer", "retry"}
        assert analytics["hits"] == 1
        assert analytics["misses"] == 1
        assert analytics["sets"] == 1
        assert analytics["size"] == 1
        assert analytics["max_size"] == 10
        assert analytics["memory_usage"] > 0
        assert analytics["hit_rate"] == "50.00%"

    @pytest.mark.asyncio
    async def test_clear_everything(self, surface):
        await surface.set("places", "a", 1)
        await surface.set("chat", "b", 2)

        assert await surface.clear() == 2
        assert surface.get_debug_info()["total_entries"] == 0


class TestDebugServer:
    """Test the FastAPI debug server."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_set_get_delete_entry(self, client):
        assert client.put("/debug/cache/places/lisbon", json={"value": {"lat": 38.72}}).status_code == 200

        response = client.get("/debug/cache/places/lisbon")
        assert response.status_code == 200
        assert response.json()["value"] == {"lat": 38.72}

        entries = client.get("/debug/cache/places").json()["entries"]
        assert [e["key"] for e in entries] == ["lisbon"]
        assert entries[0]["state"] == "fresh"

        assert client.delete("/debug/cache/places/lisbon").json()["removed"] == 1
        assert client.get("/debug/cache/places/lisbon").status_code == 404

    def test_unknown_namespace_is_404(self, client):
        assert client.get("/debug/cache/weather/x").status_code == 404
        assert client.get("/debug/analytics", params={"namespace": "weather"}).status_code == 404
        assert client.delete("/debug/cache/weather").status_code == 404

    def test_info_and_analytics(self, client):
        client.put("/debug/cache/places/a", json={"value": 1})

        info = client.get("/debug/info").json()
        analytics = client.get("/debug/analytics").json()

        assert info["total_entries"] == 1
        assert set(analytics) == {"places", "chat"}
        assert analytics["places"]["sets"] == 1

    def test_clear_namespace_and_all(self, client):
        client.put("/debug/cache/places/a", json={"value": 1})
        client.put("/debug/cache/chat/b", json={"value": 2})

        assert client.delete("/debug/cache/places").json()["removed"] == 1
        assert client.delete("/debug/cache").json()["removed"] == 1

    def test_emit_event(self, client):
        response = client.post(
            "/debug/events/destination_change",
            json={"destination": "Porto", "previous_destination": "Lisbon"},
        )
        assert response.status_code == 200
        assert response.json()["event"] == "destination_change"

        assert client.post("/debug/events/user_login").status_code == 200
        assert client.post("/debug/events/no_such_event").status_code == 404
        assert client.post("/debug/events/destination_change", json={"city": "x"}).status_code == 422

    def test_maintenance_without_scheduler(self, client):
        assert client.post("/debug/maintenance").status_code == 404
