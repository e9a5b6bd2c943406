"""
RetryExecutor - Bounded retries with exponential backoff.

The last error is always re-raised unchanged; callers see exactly what the
operation raised on its final attempt.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from tripcache.services.classifier import classify_error, is_retryable

T = TypeVar("T")


@dataclass
class RetryOptions:
    """Retry configuration. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0
    should_retry: Callable[[BaseException], bool] | None = None


class RetryExecutor:
    """
    Runs an async operation with retries.

    Usage:
        executor = RetryExecutor()
        data = await executor.execute(
            lambda: client.get_json(url),
            RetryOptions(max_retries=2, initial_delay=0.5),
        )
    """

    def __init__(
        self,
        default_options: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        debug: bool = False,
    ):
        self._default_options = default_options or RetryOptions()
        self._sleep = sleep
        self._debug = debug
        self._stats = RetryStats()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        options: RetryOptions | None = None,
    ) -> T:
        """
        Execute operation, retrying retryable failures.

        Args:
            operation: Zero-argument async callable
            options: Retry configuration (executor default if omitted)

        Returns:
            Result of the first successful attempt

        Raises:
            The exception of the final attempt, unchanged
        """
        opts = options or self._default_options
        should_retry = opts.should_retry or is_retryable
        delay = opts.initial_delay

        attempt = 0
        while True:
            attempt += 1
            self._stats.attempts += 1
            try:
                result = await operation()
            except Exception as e:
                if attempt > opts.max_retries or not should_retry(e):
                    if attempt > 1:
                        self._stats.exhausted += 1
                    raise

                wait = self._next_wait(delay, e, opts)
                self._stats.retries += 1
                logger.warning(
                    f"Attempt {attempt}/{opts.max_retries + 1} failed "
                    f"({classify_error(e).value}: {e}), retrying in {wait:.2f}s"
                )
                await self._sleep(wait)
                delay = min(delay * opts.backoff_factor, opts.max_delay)
                continue

            if attempt > 1:
                self._log(f"Succeeded on attempt {attempt}")
            return result

    def _next_wait(
        self, delay: float, error: BaseException, opts: RetryOptions
    ) -> float:
        """Current delay, raised to a provider's Retry-After hint, capped."""
        retry_after = getattr(error, "retry_after", None)
        if isinstance(retry_after, (int, float)) and retry_after > delay:
            delay = float(retry_after)
        return min(delay, opts.max_delay)

    def get_stats(self) -> "RetryStats":
        """Get retry statistics."""
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Retry] {message}")


@dataclass
class RetryStats:
    """Retry statistics."""

    attempts: int = 0
    retries: int = 0
    exhausted: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "attempts": self.attempts,
            "retries": self.retries,
            "exhausted": self.exhausted,
        }
