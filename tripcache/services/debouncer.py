"""
Debouncer - Coalesces bursts of keyed calls into a single run.

Each call for a key pushes the deadline back by the quiet period and
replaces the scheduled operation; superseded operations never run. Every
caller in the burst awaits the outcome of the one operation that does run.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class _PendingCall:
    """A scheduled, not yet fired, debounced operation."""

    operation: Callable[[], Awaitable[Any]]
    deadline: float
    handle: asyncio.TimerHandle | None = None
    waiters: list[asyncio.Future[Any]] = field(default_factory=list)


class Debouncer:
    """
    Keyed async debouncer.

    Usage:
        debouncer = Debouncer()

        # Typing-triggered search: only the last query is sent
        results = await debouncer.debounce(
            key="place-search",
            operation=lambda: places_api.search(query),
            quiet_period=0.3,
        )
    """

    def __init__(self, default_quiet_period: float = 0.3, debug: bool = False):
        self._default_quiet_period = default_quiet_period
        self._pending: dict[str, _PendingCall] = {}
        self._running: set[asyncio.Task[Any]] = set()
        self._debug = debug
        self._stats = DebouncerStats()

    async def debounce(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        quiet_period: float | None = None,
    ) -> T:
        """
        Schedule operation after a quiet period with no newer call for key.

        Args:
            key: Debounce key
            operation: Async callable; replaced if a newer call arrives
            quiet_period: Seconds of silence required before running

        Returns:
            Outcome of the last operation scheduled for this burst
        """
        loop = asyncio.get_running_loop()
        period = self._default_quiet_period if quiet_period is None else quiet_period
        future: asyncio.Future[Any] = loop.create_future()

        self._stats.triggers += 1
        pending = self._pending.get(key)
        if pending is None:
            pending = _PendingCall(operation=operation, deadline=0.0)
            self._pending[key] = pending
        else:
            if pending.handle is not None:
                pending.handle.cancel()
            pending.operation = operation
            self._stats.superseded += 1
            self._log(f"RESET: {key[:50]}...")

        pending.waiters.append(future)
        pending.deadline = loop.time() + period
        pending.handle = loop.call_at(pending.deadline, self._fire, key)

        return await future

    def _fire(self, key: str) -> None:
        """Timer callback: run the latest operation for key."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return

        self._stats.executed += 1
        self._log(f"FIRE: {key[:50]}... ({len(pending.waiters)} waiters)")
        task = asyncio.get_running_loop().create_task(self._run(pending))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, pending: _PendingCall) -> None:
        """Run the operation and fan its outcome out to every waiter."""
        try:
            result = await pending.operation()
        except asyncio.CancelledError:
            for waiter in pending.waiters:
                waiter.cancel()
            raise
        except Exception as e:
            for waiter in pending.waiters:
                if not waiter.done():
                    waiter.set_exception(e)
        else:
            for waiter in pending.waiters:
                if not waiter.done():
                    waiter.set_result(result)

    def cancel(self, key: str) -> bool:
        """Drop a scheduled operation; its waiters are cancelled."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return False

        if pending.handle is not None:
            pending.handle.cancel()
        for waiter in pending.waiters:
            waiter.cancel()
        self._log(f"CANCEL: {key[:50]}...")
        return True

    def cancel_all(self) -> int:
        """Drop every scheduled operation and cancel running ones."""
        keys = list(self._pending)
        for key in keys:
            self.cancel(key)
        for task in list(self._running):
            task.cancel()
        return len(keys)

    def pending_count(self) -> int:
        """Number of keys with a scheduled, not yet fired, operation."""
        return len(self._pending)

    def get_deadline(self, key: str) -> float | None:
        """Loop time at which key's operation will fire."""
        pending = self._pending.get(key)
        return pending.deadline if pending else None

    def get_stats(self) -> "DebouncerStats":
        """Get debouncer statistics."""
        self._stats.pending = len(self._pending)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Debouncer] {message}")


@dataclass
class DebouncerStats:
    """Debouncer statistics."""

    triggers: int = 0
    superseded: int = 0
    executed: int = 0
    pending: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "triggers": self.triggers,
            "superseded": self.superseded,
            "executed": self.executed,
            "pending": self.pending,
        }
