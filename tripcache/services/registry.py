"""
CacheRegistry - Namespace configurations and their stores.

The registry is constructed once by the application root and handed to
everything that needs caching. A namespace must be registered before use;
there is no implicit default namespace.

Features:
- One NamespaceStore per registered namespace (last registration wins)
- User-scoped namespaces partitioned by the current user
- Write-through persistence and lazy hydration for persistent namespaces
- Declarative invalidation rules driven by the event bus
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

from loguru import logger

from tripcache.services.cache import (
    CacheEntry,
    CacheNamespaceConfig,
    CacheResult,
    NamespaceStats,
    NamespaceStore,
)
from tripcache.services.errors import NamespaceNotRegisteredError
from tripcache.services.events import (
    CacheEvent,
    EventBus,
    EventPayload,
    InvalidationRule,
    UserChanged,
)
from tripcache.services.persistence import CachePersistence

ANONYMOUS_USER = "-"
_CURRENT: Any = object()  # "whoever is the current user"


class CacheRegistry:
    """
    Registry of cache namespaces.

    Usage:
        registry = CacheRegistry(events=EventBus())
        registry.register_namespace(
            CacheNamespaceConfig(name="places", ttl=timedelta(hours=24))
        )
        await registry.set("places", "lisbon", {"lat": 38.72, "lng": -9.14})
        place = await registry.get("places", "lisbon")
    """

    def __init__(
        self,
        events: EventBus | None = None,
        persistence: CachePersistence | None = None,
        clock: Callable[[], datetime] = datetime.now,
        compression_threshold: int = 1024,
        debug: bool = False,
    ):
        self._stores: dict[str, NamespaceStore] = {}
        self._events = events or EventBus(debug=debug)
        self._persistence = persistence
        self._clock = clock
        self._compression_threshold = compression_threshold
        self._debug = debug
        self._current_user: str | None = None
        self._loaded: set[str] = set()
        self._load_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

        self._events.subscribe(CacheEvent.USER_LOGOUT, self._on_user_logout)

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    @property
    def current_user(self) -> str | None:
        return self._current_user

    # Namespaces

    def register_namespace(self, config: CacheNamespaceConfig) -> NamespaceStore:
        """
        Register or re-register a namespace.

        Re-registration applies to subsequent operations only; entries
        already stored keep their own TTLs.
        """
        store = self._stores.get(config.name)
        if store is None:
            store = NamespaceStore(
                config,
                clock=self._clock,
                compression_threshold=self._compression_threshold,
                debug=self._debug,
            )
            self._stores[config.name] = store
            logger.debug(f"Registered cache namespace: {config.name}")
        else:
            store.configure(config)
            logger.debug(f"Re-registered cache namespace: {config.name}")

        if config.persistence and self._persistence is None:
            logger.warning(
                f"Namespace '{config.name}' requests persistence but no "
                f"database is configured; entries will be memory-only"
            )
        return store

    def resolve(self, namespace: str) -> NamespaceStore:
        """Get a namespace's store or raise NamespaceNotRegisteredError."""
        store = self._stores.get(namespace)
        if store is None:
            raise NamespaceNotRegisteredError(namespace)
        return store

    def get_config(self, namespace: str) -> CacheNamespaceConfig:
        return self.resolve(namespace).config

    def is_registered(self, namespace: str) -> bool:
        return namespace in self._stores

    def namespaces(self) -> list[str]:
        return list(self._stores.keys())

    # Users

    async def set_current_user(self, user_id: str | None) -> None:
        """Switch the identity that scopes user-scoped namespaces."""
        previous = self._current_user
        if previous == user_id:
            return

        self._current_user = user_id
        payload = UserChanged(user_id=user_id, previous_user_id=previous)
        if previous:
            await self._events.emit(CacheEvent.USER_LOGOUT, payload)
        if user_id:
            await self._events.emit(CacheEvent.USER_LOGIN, payload)
        else:
            await self._events.emit(CacheEvent.USER_SWITCH, payload)

    def storage_key(
        self, config: CacheNamespaceConfig, key: str, user_id: Any = _CURRENT
    ) -> str:
        """Map a caller key to the store's key (user-prefixed when scoped)."""
        if config.user_scoped:
            owner = self._current_user if user_id is _CURRENT else user_id
            return f"{owner or ANONYMOUS_USER}:{key}"
        return key

    def _owner(self, config: CacheNamespaceConfig, user_id: Any = _CURRENT) -> str | None:
        if not config.user_scoped:
            return None
        return self._current_user if user_id is _CURRENT else user_id

    # Cache operations

    async def lookup(self, namespace: str, key: str) -> CacheResult[Any] | None:
        """Fresh or stale entry for key, or None (counts hit/miss)."""
        store = self.resolve(namespace)
        await self._ensure_loaded(store)
        config = store.config
        return store.get(self.storage_key(config, key), self._owner(config))

    async def get(self, namespace: str, key: str) -> Any | None:
        """Value for key if not past its stale TTL, else None."""
        result = await self.lookup(namespace, key)
        return result.data if result is not None else None

    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl: timedelta | None = None,
        user_id: Any = _CURRENT,
    ) -> None:
        """
        Store a value. Persistence failures are logged, never raised.

        Args:
            namespace: Registered namespace
            key: Caller key
            value: Value to cache
            ttl: Optional timedelta overriding the namespace's fresh TTL
            user_id: Owner to write under (defaults to the current user)
        """
        store = self.resolve(namespace)
        await self._ensure_loaded(store)
        config = store.config
        storage_key = self.storage_key(config, key, user_id)
        entry = store.build_entry(
            storage_key, value, ttl=ttl, user_id=self._owner(config, user_id)
        )
        evicted = store.put_entry(storage_key, entry)
        await self._unpersist(store, evicted)
        await self._persist(store, entry)

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete a specific key."""
        store = self.resolve(namespace)
        await self._ensure_loaded(store)
        storage_key = self.storage_key(store.config, key)
        existed = store.delete(storage_key)
        await self._unpersist(store, [storage_key])
        return existed

    async def clear(self, namespace: str, key: str | None = None) -> int:
        """Clear one key, or the whole namespace when key is None."""
        if key is not None:
            return 1 if await self.delete(namespace, key) else 0

        store = self.resolve(namespace)
        count = store.clear()
        self._loaded.add(store.name)
        if store.config.persistence and self._persistence is not None:
            try:
                async with self._write_lock:
                    count = max(
                        count, await self._persistence.delete_namespace(store.name)
                    )
            except Exception as e:
                logger.error(f"[{store.name}] Failed to clear persisted entries: {e}")
        logger.info(f"Cleared namespace '{namespace}' ({count} entries)")
        return count

    async def invalidate(self, namespace: str, pattern: str) -> int:
        """Remove entries whose key contains pattern."""
        store = self.resolve(namespace)
        await self._ensure_loaded(store)
        removed = store.invalidate(lambda k, _e: pattern in k)
        await self._unpersist(store, removed)
        if removed:
            logger.info(
                f"Invalidated {len(removed)} entries in '{namespace}' matching '{pattern}'"
            )
        return len(removed)

    async def clear_user_caches(self, user_id: str) -> int:
        """Drop one user's entries from every user-scoped namespace."""
        total = 0
        for store in list(self._stores.values()):
            if not store.config.user_scoped:
                continue
            await self._ensure_loaded(store)
            removed = store.invalidate(lambda _k, e: e.user_id == user_id)
            await self._unpersist(store, removed)
            total += len(removed)

        if total:
            logger.info(f"Cleared {total} cached entries for user {user_id}")
        return total

    async def clear_all(self) -> int:
        """Clear every namespace."""
        total = 0
        for name in self.namespaces():
            total += await self.clear(name)
        return total

    async def cleanup_expired(self) -> int:
        """Sweep entries past their stale TTL from memory and storage."""
        total = 0
        for store in list(self._stores.values()):
            total += len(store.cleanup_expired())

        if self._persistence is not None:
            try:
                async with self._write_lock:
                    await self._persistence.delete_expired(self._clock())
            except Exception as e:
                logger.error(f"Failed to sweep persisted cache entries: {e}")
        return total

    async def load_persisted(self) -> None:
        """Hydrate every persistent namespace now instead of on first use."""
        for store in list(self._stores.values()):
            await self._ensure_loaded(store)

    # Invalidation rules

    def add_invalidation_rule(self, rule: InvalidationRule) -> Callable[[], None]:
        """Apply rule whenever its trigger is emitted; returns unsubscribe."""

        async def handler(payload: EventPayload) -> None:
            await self.apply_rule(rule, payload)

        logger.debug(
            f"Added invalidation rule {rule.trigger.value} -> {', '.join(rule.targets)}"
        )
        return self._events.subscribe(rule.trigger, handler)

    async def apply_rule(self, rule: InvalidationRule, payload: EventPayload) -> int:
        """Run one invalidation rule against a payload."""
        if rule.condition is not None and not rule.condition(payload):
            return 0

        pattern = rule.key_pattern(payload) if rule.key_pattern else None
        total = 0
        for target in rule.targets:
            if not self.is_registered(target):
                continue
            if rule.key_pattern is None:
                total += await self.clear(target)
            elif pattern:
                total += await self.invalidate(target, pattern)
        return total

    async def _on_user_logout(self, payload: EventPayload) -> None:
        previous = getattr(payload, "previous_user_id", None)
        if previous:
            await self.clear_user_caches(previous)

    # Introspection

    def total_entries(self) -> int:
        return sum(len(store) for store in self._stores.values())

    def get_stats(self, namespace: str) -> NamespaceStats:
        return self.resolve(namespace).get_stats()

    def get_all_stats(self) -> dict[str, NamespaceStats]:
        return {name: store.get_stats() for name, store in self._stores.items()}

    # Persistence

    async def _ensure_loaded(self, store: NamespaceStore) -> None:
        if (
            store.name in self._loaded
            or not store.config.persistence
            or self._persistence is None
        ):
            return

        async with self._load_lock:
            if store.name in self._loaded:
                return
            try:
                entries = await self._persistence.load(
                    store.config, store.codec, self._clock()
                )
            except Exception as e:
                logger.error(f"[{store.name}] Failed to load persisted entries: {e}")
                entries = []
            for entry in entries:
                if entry.key not in store:
                    store.admit(entry.key, entry)
            self._loaded.add(store.name)

    async def _persist(self, store: NamespaceStore, entry: CacheEntry[Any]) -> None:
        if not store.config.persistence or self._persistence is None:
            return
        try:
            async with self._write_lock:
                await self._persistence.save(store.name, entry, store.codec)
        except Exception as e:
            logger.error(f"[{store.name}] Failed to persist {entry.key[:50]}: {e}")

    async def _unpersist(self, store: NamespaceStore, storage_keys: list[str]) -> None:
        if not storage_keys or not store.config.persistence or self._persistence is None:
            return
        try:
            async with self._write_lock:
                await self._persistence.delete(store.name, storage_keys)
        except Exception as e:
            logger.error(f"[{store.name}] Failed to delete persisted entries: {e}")
