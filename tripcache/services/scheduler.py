"""
Cache maintenance scheduler.

Uses APScheduler to periodically sweep expired entries (memory and
storage) and to re-warm registered entries.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from tripcache.services.registry import CacheRegistry
from tripcache.services.warming import CacheWarmer, WarmingReport
from tripcache.utils import logged_job


class CacheMaintenanceScheduler:
    """Periodic cleanup and warming."""

    def __init__(
        self,
        registry: CacheRegistry,
        warmer: CacheWarmer | None = None,
        cleanup_interval_seconds: int = 300,
        refresh_interval_seconds: int = 1800,
    ):
        self.scheduler = AsyncIOScheduler()
        self._registry = registry
        self._warmer = warmer
        self._cleanup_interval = cleanup_interval_seconds
        self._refresh_interval = refresh_interval_seconds
        self._is_running = False

    @logged_job
    async def cleanup_job(self) -> int:
        """Expired-entry sweep."""
        removed = await self._registry.cleanup_expired()
        if removed:
            logger.info(f"Scheduled cleanup removed {removed} expired cache entries")
        return removed

    @logged_job
    async def warming_job(self) -> WarmingReport | None:
        """Re-warm every registered warming request."""
        if self._warmer is None or not self._warmer.registered():
            return None
        return await self._warmer.warm_registered()

    def start(self) -> None:
        """Start the scheduler (must be called with a running event loop)."""
        if self._is_running:
            logger.warning("Cache maintenance scheduler is already running")
            return

        self.scheduler.add_job(
            self.cleanup_job,
            trigger="interval",
            seconds=self._cleanup_interval,
            id="cache_cleanup_job",
            name="Cache Expired Entry Sweep",
            replace_existing=True,
        )
        if self._warmer is not None:
            self.scheduler.add_job(
                self.warming_job,
                trigger="interval",
                seconds=self._refresh_interval,
                id="cache_warming_job",
                name="Cache Re-warming",
                replace_existing=True,
            )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache maintenance scheduler started: cleanup every "
            f"{self._cleanup_interval}s, warming every {self._refresh_interval}s"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            logger.warning("Cache maintenance scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache maintenance scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    def job_ids(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    async def run_now(self) -> dict[str, int]:
        """Run both jobs immediately (manual trigger)."""
        logger.info("Manual cache maintenance triggered")
        removed = await self.cleanup_job()
        report = await self.warming_job()
        return {
            "expired_removed": removed,
            "warmed": len(report.succeeded) if report else 0,
            "warming_failed": len(report.failed) if report else 0,
        }
