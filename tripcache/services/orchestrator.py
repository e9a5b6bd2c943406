"""
RequestOrchestrator - Unified cached request entry point.

Combines:
- CacheRegistry for namespaced, TTL-bound storage
- Stale-while-revalidate with background refresh
- RequestDeduplicator for concurrent request collapsing
- Debouncer for bursty callers
- RetryExecutor for classified retries
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

from tripcache.services.cache import NamespaceStore
from tripcache.services.debouncer import Debouncer
from tripcache.services.deduplicator import RequestDeduplicator
from tripcache.services.keys import CacheKeyBuilder
from tripcache.services.registry import _CURRENT, CacheRegistry
from tripcache.services.retry import RetryExecutor, RetryOptions

T = TypeVar("T")


@dataclass
class RequestOptions:
    """Per-request behaviour."""

    retry: RetryOptions | None = None
    use_cache: bool = True
    force_fresh: bool = False  # Skip the cache read, still store the result
    deduplicate: bool = True
    dedup_key: str | None = None
    debounce_key: str | None = None  # Debounce only when set
    debounce_period: float | None = None


@dataclass
class RequestResult(Generic[T]):
    """Result from an orchestrated request."""

    data: T
    from_cache: bool = False
    is_stale: bool = False
    namespace: str | None = None
    key: str | None = None
    refreshing: bool = False


class RequestOrchestrator:
    """
    Single façade provider-specific services call.

    Usage:
        orchestrator = RequestOrchestrator(registry)

        places = await orchestrator.request(
            "google-maps-api",
            orchestrator.make_key("places.search", {"query": query}),
            lambda: maps_client.search(query),
        )
    """

    def __init__(
        self,
        registry: CacheRegistry,
        deduplicator: RequestDeduplicator | None = None,
        debouncer: Debouncer | None = None,
        retry: RetryExecutor | None = None,
        keys: CacheKeyBuilder | None = None,
        debug: bool = False,
    ):
        self._registry = registry
        self._deduplicator = deduplicator or RequestDeduplicator(debug=debug)
        self._debouncer = debouncer or Debouncer(debug=debug)
        self._retry = retry or RetryExecutor(debug=debug)
        self._keys = keys or CacheKeyBuilder()
        self._debug = debug
        self._background: set[asyncio.Task[Any]] = set()
        self._refreshing: set[str] = set()

    @property
    def registry(self) -> CacheRegistry:
        return self._registry

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._deduplicator

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def retry_executor(self) -> RetryExecutor:
        return self._retry

    @property
    def keys(self) -> CacheKeyBuilder:
        return self._keys

    def make_key(self, base: str, params: dict[str, Any] | None = None) -> str:
        """Deterministic cache key for an operation and its parameters."""
        return self._keys.build(base, params)

    async def request(
        self,
        namespace: str,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        options: RequestOptions | None = None,
    ) -> T:
        """
        Fetch through cache, dedup, debounce and retry.

        Args:
            namespace: Registered namespace
            key: Cache key (see make_key)
            fetch_fn: Zero-argument async call to the provider
            options: Request options

        Returns:
            Cached, stale or freshly fetched value

        Raises:
            NamespaceNotRegisteredError: namespace was never registered
            The fetch's own (classified) error on a miss that fails
        """
        result = await self.request_with_meta(namespace, key, fetch_fn, options)
        return result.data

    async def request_with_meta(
        self,
        namespace: str,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        options: RequestOptions | None = None,
    ) -> RequestResult[T]:
        """Same as request() but reports where the value came from."""
        opts = options or RequestOptions()
        store = self._registry.resolve(namespace)

        if not opts.use_cache:
            data = await self._produce(store, key, fetch_fn, opts, write=False)
            return RequestResult(data=data, namespace=namespace, key=key)

        if opts.force_fresh:
            self._log(f"FORCE FRESH: {namespace}:{key[:50]}...")
            data = await self._produce(store, key, fetch_fn, opts)
            return RequestResult(data=data, namespace=namespace, key=key)

        return await self.get_or_fetch(namespace, key, fetch_fn, opts)

    async def get_or_fetch(
        self,
        namespace: str,
        key: str,
        producer: Callable[[], Awaitable[T]],
        options: RequestOptions | None = None,
    ) -> RequestResult[T]:
        """
        Stale-while-revalidate lookup.

        - fresh entry: returned, producer not called
        - stale entry: returned at once, one background refresh started
        - no entry: producer runs (deduplicated, retried), result stored
        """
        opts = options or RequestOptions()
        store = self._registry.resolve(namespace)
        cached = await self._registry.lookup(namespace, key)

        if cached is not None and not cached.is_stale:
            return RequestResult(
                data=cached.data, from_cache=True, namespace=namespace, key=key
            )

        if cached is not None:
            self._start_revalidation(store, key, producer, opts)
            return RequestResult(
                data=cached.data,
                from_cache=True,
                is_stale=True,
                namespace=namespace,
                key=key,
                refreshing=True,
            )

        data = await self._produce(store, key, producer, opts)
        return RequestResult(data=data, namespace=namespace, key=key)

    async def _produce(
        self,
        store: NamespaceStore,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        opts: RequestOptions,
        write: bool = True,
        user_id: Any = _CURRENT,
    ) -> T:
        """Producer path: debounce? -> dedupe -> retry -> store."""
        namespace = store.name
        if user_id is _CURRENT:
            user_id = self._registry.current_user
        storage_key = self._registry.storage_key(store.config, key, user_id)

        async def fetch_and_store() -> T:
            data = await self._retry.execute(fetch_fn, opts.retry)
            if write:
                await self._registry.set(namespace, key, data, user_id=user_id)
            return data

        async def run() -> T:
            if not opts.deduplicate:
                return await fetch_and_store()
            dedup_key = opts.dedup_key or f"{namespace}:{storage_key}"
            if not write:
                dedup_key = f"{dedup_key}#uncached"
            return await self._deduplicator.dedupe(dedup_key, fetch_and_store)

        if opts.debounce_key:
            return await self._debouncer.debounce(
                opts.debounce_key, run, opts.debounce_period
            )
        return await run()

    def _start_revalidation(
        self,
        store: NamespaceStore,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        opts: RequestOptions,
    ) -> None:
        """Fire-and-forget refresh of a stale entry, at most one per key."""
        user_id = self._registry.current_user
        storage_key = self._registry.storage_key(store.config, key, user_id)
        refresh_key = opts.dedup_key or f"{store.name}:{storage_key}"
        if refresh_key in self._refreshing:
            self._log(f"REFRESH ALREADY RUNNING: {refresh_key[:50]}...")
            return

        refresh_opts = RequestOptions(
            retry=opts.retry,
            deduplicate=True,
            dedup_key=refresh_key,
        )

        async def revalidate() -> None:
            try:
                await self._produce(
                    store, key, producer, refresh_opts, user_id=user_id
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                store.record_revalidation(succeeded=False)
                logger.warning(
                    f"Background refresh of {store.name}:{key[:50]} failed, "
                    f"keeping stale value: {e}"
                )
            else:
                store.record_revalidation(succeeded=True)
                self._log(f"REVALIDATED: {store.name}:{key[:50]}...")
            finally:
                self._refreshing.discard(refresh_key)

        self._refreshing.add(refresh_key)

        task = asyncio.create_task(revalidate())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def pending_revalidations(self) -> int:
        return len(self._background)

    async def wait_for_revalidations(self) -> None:
        """Wait until every background refresh has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        """Cancel background work and in-flight requests."""
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._refreshing.clear()
        self._debouncer.cancel_all()
        await self._deduplicator.cancel_all()
        logger.debug("RequestOrchestrator closed")

    def get_health_status(self) -> dict[str, Any]:
        """Status of the request machinery."""
        return {
            "deduplicator": self._deduplicator.get_stats().to_dict(),
            "debouncer": self._debouncer.get_stats().to_dict(),
            "retry": self._retry.get_stats().to_dict(),
            "pending_revalidations": len(self._background),
            "key_collisions": self._keys.collisions,
        }

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Orchestrator] {message}")
