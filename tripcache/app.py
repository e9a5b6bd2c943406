"""
Application root - builds the cache layer once and hands it out.

Every component is constructed here and passed to its dependents; nothing
in the services package reaches for a global instance.
"""

from fastapi import FastAPI
from loguru import logger

from tripcache.api.debug_server import create_debug_server
from tripcache.datastore.engine import CacheDatabase
from tripcache.services.client import ApiClient
from tripcache.services.debouncer import Debouncer
from tripcache.services.debug import CacheDebugSurface
from tripcache.services.deduplicator import RequestDeduplicator
from tripcache.services.defaults import install_default_rules, register_defaults
from tripcache.services.events import EventBus
from tripcache.services.keys import CacheKeyBuilder
from tripcache.services.orchestrator import RequestOrchestrator
from tripcache.services.persistence import CachePersistence
from tripcache.services.registry import CacheRegistry
from tripcache.services.retry import RetryExecutor, RetryOptions
from tripcache.services.scheduler import CacheMaintenanceScheduler
from tripcache.services.warming import CacheWarmer
from tripcache.settings import Settings


class CacheApplication:
    """
    Wires the request/cache layer from settings.

    Usage:
        application = CacheApplication(global_settings)
        await application.start()
        places = await application.client.get_json("google-maps-api", url, params)
        await application.close()
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        debug = settings.debug

        self.database = CacheDatabase(settings.database_url, echo=settings.database_echo)
        self.events = EventBus(debug=debug)
        self.registry = CacheRegistry(
            events=self.events,
            persistence=CachePersistence(self.database),
            compression_threshold=settings.compression_threshold,
            debug=debug,
        )
        self.orchestrator = RequestOrchestrator(
            self.registry,
            deduplicator=RequestDeduplicator(debug=debug),
            debouncer=Debouncer(default_quiet_period=settings.debounce_period, debug=debug),
            retry=RetryExecutor(
                RetryOptions(
                    max_retries=settings.retry_max_retries,
                    initial_delay=settings.retry_initial_delay,
                    backoff_factor=settings.retry_backoff_factor,
                    max_delay=settings.retry_max_delay,
                ),
                debug=debug,
            ),
            keys=CacheKeyBuilder(max_length=settings.key_max_length),
            debug=debug,
        )
        self.client = ApiClient(self.orchestrator, timeout=settings.http_timeout)
        self.warmer = CacheWarmer(
            self.orchestrator, max_concurrency=settings.warming_concurrency
        )
        self.scheduler = CacheMaintenanceScheduler(
            self.registry,
            warmer=self.warmer,
            cleanup_interval_seconds=settings.cleanup_interval_seconds,
            refresh_interval_seconds=settings.refresh_interval_seconds,
        )
        self.debug = CacheDebugSurface(self.orchestrator)

        if settings.install_defaults:
            register_defaults(self.registry)
            install_default_rules(self.registry)

    def create_debug_app(self) -> FastAPI:
        return create_debug_server(self.debug, self.scheduler)

    async def start(self) -> None:
        """Initialize storage and start maintenance."""
        logger.info("Initializing cache database...")
        await self.database.init()
        self.scheduler.start()
        logger.info(f"Cache layer ready: {len(self.registry.namespaces())} namespaces")

    async def close(self) -> None:
        """Stop maintenance, cancel background work and release resources."""
        if self.scheduler.is_running():
            self.scheduler.stop()
        await self.orchestrator.close()
        await self.client.close()
        await self.database.close()
        logger.info("Cache layer stopped")
