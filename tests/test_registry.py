"""
Unit tests for CacheRegistry.
"""

from datetime import timedelta

import pytest

from tripcache.services.cache import CacheNamespaceConfig
from tripcache.services.errors import ConfigurationError, NamespaceNotRegisteredError
from tripcache.services.events import CacheEvent


class TestNamespaces:
    """Test namespace registration."""

    @pytest.mark.asyncio
    async def test_unknown_namespace_raises(self, registry):
        with pytest.raises(NamespaceNotRegisteredError) as exc_info:
            await registry.get("weather", "lisbon")

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.namespace == "weather"

    @pytest.mark.asyncio
    async def test_reregistration_last_writer_wins(self, registry, clock):
        await registry.set("places", "old", "v")
        registry.register_namespace(
            CacheNamespaceConfig(name="places", ttl=timedelta(seconds=5), max_size=3)
        )
        await registry.set("places", "new", "v")

        assert registry.get_config("places").ttl == timedelta(seconds=5)
        clock.advance(10)
        # The earlier entry keeps the TTL it was written with
        assert await registry.get("places", "old") == "v"
        assert await registry.get("places", "new") is None

    def test_introspection(self, registry):
        assert registry.namespaces() == ["places", "reviews"]
        assert registry.is_registered("places")
        assert not registry.is_registered("weather")


class TestCacheOperations:
    """Test get/set/clear/invalidate."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, registry):
        await registry.set("places", "lisbon", {"lat": 38.72})
        assert await registry.get("places", "lisbon") == {"lat": 38.72}

    @pytest.mark.asyncio
    async def test_get_returns_stale_until_stale_ttl(self, registry, clock):
        await registry.set("places", "k", "v")
        clock.advance(90)

        result = await registry.lookup("places", "k")
        assert result.data == "v"
        assert result.is_stale is True

        clock.advance(30)
        assert await registry.get("places", "k") is None

    @pytest.mark.asyncio
    async def test_capacity_is_never_exceeded(self, registry):
        for i in range(4):
            await registry.set("places", f"k{i}", i)

        assert len(registry.resolve("places")) == 3
        assert await registry.get("places", "k0") is None
        assert registry.get_stats("places").evictions == 1

    @pytest.mark.asyncio
    async def test_clear_key_and_namespace(self, registry):
        await registry.set("places", "a", 1)
        await registry.set("places", "b", 2)

        assert await registry.clear("places", "a") == 1
        assert await registry.clear("places", "a") == 0
        assert await registry.get("places", "b") == 2
        assert await registry.clear("places") == 1
        assert await registry.get("places", "b") is None

    @pytest.mark.asyncio
    async def test_invalidate_matches_caller_key(self, registry):
        registry.register_namespace(CacheNamespaceConfig(name="search", max_size=10))
        await registry.set("search", "museums in Lisbon", 1)
        await registry.set("search", "food in Lisbon", 2)
        await registry.set("search", "food in Porto", 3)

        assert await registry.invalidate("search", "Lisbon") == 2
        assert await registry.get("search", "food in Porto") == 3

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, registry, clock):
        await registry.set("places", "a", 1)
        await registry.set("reviews", "b", 2)
        clock.advance(200)

        assert await registry.cleanup_expired() == 2
        assert registry.total_entries() == 0


class TestUserScoping:
    """Test user-scoped namespaces."""

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, registry):
        await registry.set_current_user("bob")
        await registry.set("reviews", "hotel", "alice's notes", user_id="alice")

        assert await registry.get("reviews", "hotel") is None

        await registry.set("reviews", "hotel", "bob's notes")
        assert await registry.get("reviews", "hotel") == "bob's notes"
        assert registry.resolve("reviews").keys() == ["alice:hotel", "bob:hotel"]

    @pytest.mark.asyncio
    async def test_shared_namespace_ignores_user(self, registry):
        await registry.set_current_user("alice")
        await registry.set("places", "lisbon", 1)
        registry._current_user = "bob"

        assert await registry.get("places", "lisbon") == 1

    @pytest.mark.asyncio
    async def test_user_switch_emits_events(self, registry, events):
        seen = []
        for event in (CacheEvent.USER_LOGIN, CacheEvent.USER_LOGOUT, CacheEvent.USER_SWITCH):
            events.subscribe(event, lambda p, e=event: seen.append((e, p.user_id, p.previous_user_id)))

        await registry.set_current_user("alice")
        await registry.set_current_user("alice")
        await registry.set_current_user("bob")
        await registry.set_current_user(None)

        assert seen == [
            (CacheEvent.USER_LOGIN, "alice", None),
            (CacheEvent.USER_LOGOUT, "bob", "alice"),
            (CacheEvent.USER_LOGIN, "bob", "alice"),
            (CacheEvent.USER_LOGOUT, None, "bob"),
            (CacheEvent.USER_SWITCH, None, "bob"),
        ]

    @pytest.mark.asyncio
    async def test_logout_clears_previous_users_entries(self, registry):
        await registry.set_current_user("alice")
        await registry.set("reviews", "hotel", "alice's notes")
        await registry.set("places", "lisbon", "shared")

        await registry.set_current_user("bob")

        assert registry.resolve("reviews").keys() == []
        assert await registry.get("places", "lisbon") == "shared"

        await registry.set_current_user("alice")
        assert await registry.get("reviews", "hotel") is None

    @pytest.mark.asyncio
    async def test_clear_user_caches(self, registry):
        await registry.set("reviews", "a", 1, user_id="alice")
        await registry.set("reviews", "b", 2, user_id="bob")

        assert await registry.clear_user_caches("alice") == 1
        assert registry.resolve("reviews").keys() == ["bob:b"]
