"""
Service layer - unified request/cache layer for external provider calls.

Provides:
- CacheRegistry / NamespaceStore: Namespaced TTL cache with stale window and LRU bounds
- RequestOrchestrator: Cache + dedup + debounce + retry behind one call
- RequestDeduplicator: Collapses concurrent identical requests
- Debouncer: Runs only the last call of a burst
- RetryExecutor: Classified retries with exponential backoff
- EventBus: Context-change events and invalidation rules
- ApiClient: Cached JSON over HTTP
"""

from tripcache.services.errors import (
    ServiceError,
    ConfigurationError,
    NamespaceNotRegisteredError,
    CacheError,
    NetworkError,
    RequestTimeoutError,
    RateLimitError,
    ServiceUnavailableError,
    ClientError,
)
from tripcache.services.classifier import ErrorKind, classify_error, is_retryable
from tripcache.services.retry import RetryExecutor, RetryOptions
from tripcache.services.deduplicator import RequestDeduplicator
from tripcache.services.debouncer import Debouncer
from tripcache.services.keys import CacheKeyBuilder
from tripcache.services.cache import (
    CacheEntry,
    CacheNamespaceConfig,
    CacheResult,
    EntryState,
    NamespaceStats,
    NamespaceStore,
)
from tripcache.services.events import (
    CacheEvent,
    EventBus,
    InvalidationRule,
)
from tripcache.services.registry import CacheRegistry
from tripcache.services.orchestrator import (
    RequestOptions,
    RequestOrchestrator,
    RequestResult,
)
from tripcache.services.client import ApiClient

__all__ = [
    # Errors
    "ServiceError",
    "ConfigurationError",
    "NamespaceNotRegisteredError",
    "CacheError",
    "NetworkError",
    "RequestTimeoutError",
    "RateLimitError",
    "ServiceUnavailableError",
    "ClientError",
    # Classification / retry
    "ErrorKind",
    "classify_error",
    "is_retryable",
    "RetryExecutor",
    "RetryOptions",
    # Concurrency
    "RequestDeduplicator",
    "Debouncer",
    # Cache
    "CacheKeyBuilder",
    "CacheEntry",
    "CacheNamespaceConfig",
    "CacheResult",
    "EntryState",
    "NamespaceStats",
    "NamespaceStore",
    "CacheRegistry",
    # Events
    "CacheEvent",
    "EventBus",
    "InvalidationRule",
    # Orchestration
    "RequestOptions",
    "RequestOrchestrator",
    "RequestResult",
    "ApiClient",
]
