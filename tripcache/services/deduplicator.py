"""
RequestDeduplicator - One provider call per key, however many callers.

A second caller asking for a key that is already being fetched attaches to
the running task instead of hitting the provider again. Every attached
caller sees the same value or the same exception.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class DeduplicatorStats:
    """Counters for shared fetches."""

    total: int = 0  # Fetches actually started
    deduplicated: int = 0  # Callers that joined a running fetch
    in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        """Share of callers served by someone else's fetch."""
        callers = self.total + self.deduplicated
        return self.deduplicated / callers if callers else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }


class RequestDeduplicator:
    """
    Shares in-flight fetches between concurrent callers.

    The shared fetch runs in its own task and each caller awaits it through
    asyncio.shield, so a caller that gives up does not abort the fetch for
    the others. The key is released when the fetch settles; the next call
    after that starts over.

    Usage:
        dedup = RequestDeduplicator()

        details = await dedup.dedupe(
            f"google-maps-api:{place_id}",
            lambda: maps.place_details(place_id),
        )
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run request_fn under key, or join the run already under way.

        Args:
            key: Identity of the fetch, usually namespace plus storage key
            request_fn: Coroutine factory, only called when nothing is running

        Returns:
            The shared fetch's result
        """
        async with self._lock:
            task = self._in_flight.get(key)
            if task is not None:
                self._stats.deduplicated += 1
                self._log(f"JOIN: {key[:50]}...")
            else:
                self._stats.total += 1
                self._log(f"START: {key[:50]}...")
                task = asyncio.create_task(self._run(key, request_fn))
                self._in_flight[key] = task

        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await request_fn()
        finally:
            # cancel() may already have handed the key to a newer task
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
            self._log(f"SETTLED: {key[:50]}...")

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def cancel(self, key: str) -> bool:
        """Abort the fetch running under key; False when there is none."""
        async with self._lock:
            task = self._in_flight.pop(key, None)
        if task is None:
            return False
        task.cancel()
        self._log(f"CANCEL: {key[:50]}...")
        return True

    async def cancel_all(self) -> int:
        """Abort every running fetch and return how many there were."""
        async with self._lock:
            tasks = list(self._in_flight.values())
            self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            self._log(f"CANCEL ALL: {len(tasks)} fetches")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        return len(self._in_flight)

    def get_in_flight_keys(self) -> list[str]:
        return list(self._in_flight)

    def get_stats(self) -> DeduplicatorStats:
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")
