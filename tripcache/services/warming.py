"""
CacheWarmer - Preloads cache entries ahead of demand.

High priority requests run one after another, in order; medium and low
priority requests run concurrently under a concurrency cap. Failures are
logged and reported, never raised.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from tripcache.services.orchestrator import RequestOptions, RequestOrchestrator


class WarmingPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_ORDER = {
    WarmingPriority.HIGH: 0,
    WarmingPriority.MEDIUM: 1,
    WarmingPriority.LOW: 2,
}


@dataclass
class WarmingRequest:
    """One entry to preload."""

    namespace: str
    key: str
    loader: Callable[[], Awaitable[Any]]
    priority: WarmingPriority = WarmingPriority.MEDIUM
    force_fresh: bool = False


@dataclass
class WarmingReport:
    """Outcome of a warming run."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class CacheWarmer:
    """
    Usage:
        warmer = CacheWarmer(orchestrator, max_concurrency=3)
        warmer.register(WarmingRequest(
            namespace="recommendations-api",
            key="restaurants:lisbon",
            loader=lambda: recommendations.restaurants("Lisbon"),
            priority=WarmingPriority.HIGH,
        ))
        report = await warmer.warm_registered()
    """

    def __init__(self, orchestrator: RequestOrchestrator, max_concurrency: int = 3):
        self._orchestrator = orchestrator
        self._max_concurrency = max(1, max_concurrency)
        self._registered: dict[str, WarmingRequest] = {}

    def register(self, request: WarmingRequest) -> None:
        """Remember a request for scheduled re-warming (deduplicated by key)."""
        self._registered[f"{request.namespace}:{request.key}"] = request

    def unregister(self, namespace: str, key: str) -> bool:
        return self._registered.pop(f"{namespace}:{key}", None) is not None

    def registered(self) -> list[WarmingRequest]:
        return list(self._registered.values())

    async def warm_registered(self) -> WarmingReport:
        """Warm everything registered."""
        return await self.warm(self.registered())

    async def warm(self, requests: list[WarmingRequest]) -> WarmingReport:
        """Warm a batch of requests by priority."""
        report = WarmingReport()
        if not requests:
            return report

        ordered = sorted(requests, key=lambda r: _PRIORITY_ORDER[r.priority])
        high = [r for r in ordered if r.priority is WarmingPriority.HIGH]
        rest = [r for r in ordered if r.priority is not WarmingPriority.HIGH]
        logger.info(
            f"Warming cache: {len(high)} high priority, {len(rest)} other requests"
        )

        for request in high:
            await self._warm_one(request, report)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(request: WarmingRequest) -> None:
            async with semaphore:
                await self._warm_one(request, report)

        await asyncio.gather(*(bounded(r) for r in rest))

        logger.info(
            f"Cache warming completed: {len(report.succeeded)} ok, "
            f"{len(report.failed)} failed"
        )
        return report

    async def _warm_one(self, request: WarmingRequest, report: WarmingReport) -> None:
        label = f"{request.namespace}:{request.key}"
        try:
            await self._orchestrator.request(
                request.namespace,
                request.key,
                request.loader,
                RequestOptions(force_fresh=request.force_fresh),
            )
        except Exception as e:
            logger.warning(f"Cache warming failed for {label}: {e}")
            report.failed[label] = str(e)
        else:
            report.succeeded.append(label)
