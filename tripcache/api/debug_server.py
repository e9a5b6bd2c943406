"""FastAPI server backing the cache debug panel."""

from typing import Any

from fastapi import Body, FastAPI
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from tripcache.exceptions import NotFoundError, ValidationError
from tripcache.services.debug import CacheDebugSurface
from tripcache.services.errors import NamespaceNotRegisteredError
from tripcache.services.events import CacheEvent
from tripcache.services.scheduler import CacheMaintenanceScheduler


class CacheValue(BaseModel):
    value: Any


class DebugServer:
    """HTTP access to analytics and administrative cache operations."""

    def __init__(
        self,
        surface: CacheDebugSurface,
        scheduler: CacheMaintenanceScheduler | None = None,
    ):
        self.surface = surface
        self.scheduler = scheduler
        self.app = FastAPI(title="tripcache debug server")

        # Register routes
        self.app.get("/health")(self.health_check)
        self.app.get("/debug/info")(self.debug_info)
        self.app.get("/debug/analytics")(self.analytics)
        self.app.get("/debug/cache/{namespace}")(self.list_entries)
        self.app.delete("/debug/cache")(self.clear_all)
        self.app.delete("/debug/cache/{namespace}")(self.clear_namespace)
        self.app.get("/debug/cache/{namespace}/{key:path}")(self.get_entry)
        self.app.put("/debug/cache/{namespace}/{key:path}")(self.set_entry)
        self.app.delete("/debug/cache/{namespace}/{key:path}")(self.delete_entry)
        self.app.post("/debug/events/{event}")(self.emit_event)
        self.app.post("/debug/maintenance")(self.run_maintenance)

    async def health_check(self):
        """Health check endpoint."""
        return {"status": "ok", "service": "tripcache"}

    async def debug_info(self):
        return self.surface.get_debug_info()

    async def analytics(self, namespace: str | None = None):
        """Analytics for one namespace, or all of them."""
        try:
            return self.surface.get_analytics(namespace)
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))

    async def list_entries(self, namespace: str):
        try:
            return {"namespace": namespace, "entries": self.surface.list_entries(namespace)}
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))

    async def get_entry(self, namespace: str, key: str):
        try:
            value = await self.surface.get(namespace, key)
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))
        if value is None:
            raise NotFoundError(f"No cached value for '{key}' in '{namespace}'")
        return {"namespace": namespace, "key": key, "value": value}

    async def set_entry(self, namespace: str, key: str, body: CacheValue):
        try:
            await self.surface.set(namespace, key, body.value)
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))
        logger.info(f"Debug panel set {namespace}:{key[:50]}")
        return {"namespace": namespace, "key": key, "stored": True}

    async def delete_entry(self, namespace: str, key: str):
        try:
            removed = await self.surface.clear(namespace, key)
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))
        return {"namespace": namespace, "key": key, "removed": removed}

    async def clear_namespace(self, namespace: str):
        try:
            removed = await self.surface.clear(namespace)
        except NamespaceNotRegisteredError as e:
            raise NotFoundError(str(e))
        return {"namespace": namespace, "removed": removed}

    async def clear_all(self):
        removed = await self.surface.clear()
        return {"removed": removed}

    async def emit_event(
        self, event: str, payload: dict[str, Any] | None = Body(default=None)
    ):
        """Broadcast a cache event with an optional JSON payload."""
        try:
            cache_event = CacheEvent(event)
        except ValueError:
            raise NotFoundError(f"Unknown cache event '{event}'")
        try:
            delivered = await self.surface.emit(cache_event, payload)
        except PayloadValidationError as e:
            raise ValidationError(str(e))
        return {"event": cache_event.value, "delivered": delivered}

    async def run_maintenance(self):
        """Run the expired-entry sweep and warming now."""
        if self.scheduler is None:
            raise NotFoundError("No maintenance scheduler configured")
        return await self.scheduler.run_now()


def create_debug_server(
    surface: CacheDebugSurface,
    scheduler: CacheMaintenanceScheduler | None = None,
) -> FastAPI:
    """Create FastAPI app for the cache debug panel.

    Args:
        surface: CacheDebugSurface instance
        scheduler: Optional maintenance scheduler for manual runs

    Returns:
        FastAPI app
    """
    server = DebugServer(surface, scheduler)
    return server.app
