"""
Analytics and administrative access for the cache debug panel.

Nothing on the request path uses this module; it only reads counters and
offers manual overrides for operators.
"""

from typing import Any

from tripcache.services.events import CacheEvent
from tripcache.services.orchestrator import RequestOrchestrator


class CacheDebugSurface:
    """Read-only introspection plus manual set/get/clear/emit."""

    def __init__(self, orchestrator: RequestOrchestrator):
        self._orchestrator = orchestrator
        self._registry = orchestrator.registry

    def get_debug_info(self) -> dict[str, Any]:
        """Current user, total entries, namespaces and analytics."""
        return {
            "current_user": self._registry.current_user,
            "total_entries": self._registry.total_entries(),
            "namespaces": self._registry.namespaces(),
            "analytics": self.get_analytics(),
            "requests": self._orchestrator.get_health_status(),
            "events": self._registry.events.get_stats(),
        }

    def get_analytics(self, namespace: str | None = None) -> dict[str, Any]:
        """
        Per-namespace counters.

        Args:
            namespace: Restrict to one namespace

        Raises:
            NamespaceNotRegisteredError: unknown namespace
        """
        if namespace is not None:
            return self._registry.get_stats(namespace).to_dict()
        return {
            name: stats.to_dict()
            for name, stats in self._registry.get_all_stats().items()
        }

    def list_entries(self, namespace: str) -> list[dict[str, Any]]:
        """Entry metadata for a namespace, least recently used first."""
        store = self._registry.resolve(namespace)
        now = self._registry.clock()
        return [
            {
                "key": key,
                "state": entry.state(now).value,
                "user_id": entry.user_id,
                "created_at": entry.created_at.isoformat(),
                "ttl_seconds": entry.ttl.total_seconds(),
                "stale_ttl_seconds": entry.stale_ttl.total_seconds(),
                "hits": entry.hits,
                "size_bytes": entry.size_bytes,
                "compressed": entry.compressed is not None,
            }
            for key, entry in store.entries()
        ]

    async def get(self, namespace: str, key: str) -> Any | None:
        return await self._registry.get(namespace, key)

    async def set(self, namespace: str, key: str, value: Any) -> None:
        await self._registry.set(namespace, key, value)

    async def clear(self, namespace: str | None = None, key: str | None = None) -> int:
        """Clear a key, a namespace, or everything."""
        if namespace is None:
            return await self._registry.clear_all()
        return await self._registry.clear(namespace, key)

    async def emit(self, event: CacheEvent, payload: Any = None) -> int:
        """Broadcast an event as if a collaborator had."""
        return await self._registry.events.emit(event, payload)
