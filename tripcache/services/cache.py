"""
NamespaceStore - In-memory cache region with TTL, stale window and LRU bounds.

Features:
- Fresh / stale / expired entry states (stale-while-revalidate support)
- LRU eviction bounded by the namespace's max_size
- Expired and stale entries are evicted before fresh ones under pressure
- Optional compressed payloads
- Per-namespace analytics counters

All mutating methods are synchronous, so an entry is never observed
half-written by another coroutine.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Generic, Iterator, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator

from tripcache.services.errors import CacheError
from tripcache.services.serializer import ValueCodec

T = TypeVar("T")


class CacheNamespaceConfig(BaseModel):
    """Configuration for one cache namespace."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    ttl: timedelta = timedelta(minutes=5)
    stale_ttl: timedelta | None = None  # None: no stale window
    max_size: int = Field(default=100, ge=1)
    persistence: bool = False
    user_scoped: bool = False
    compression: bool = False
    value_type: Any = None  # Validates persisted/compressed payloads

    @model_validator(mode="after")
    def _check_stale_ttl(self) -> "CacheNamespaceConfig":
        if self.ttl < timedelta(0):
            raise ValueError("ttl must not be negative")
        if self.stale_ttl is not None and self.stale_ttl < self.ttl:
            raise ValueError("stale_ttl must be greater than or equal to ttl")
        return self

    @property
    def effective_stale_ttl(self) -> timedelta:
        """Age after which an entry is unusable."""
        return self.stale_ttl if self.stale_ttl is not None else self.ttl


class EntryState(str, Enum):
    """Lifecycle state of an entry at a point in time."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    key: str
    value: T | None
    created_at: datetime
    ttl: timedelta
    stale_ttl: timedelta
    user_id: str | None = None
    compressed: bytes | None = None  # Persisted form; value is None only after hydration
    size_bytes: int = 0
    hits: int = 0
    last_accessed: datetime | None = None

    @property
    def fresh_until(self) -> datetime:
        return self.created_at + self.ttl

    @property
    def stale_until(self) -> datetime:
        return self.created_at + self.stale_ttl

    def state(self, now: datetime) -> EntryState:
        """Fresh before ttl, stale until stale_ttl, expired after."""
        if now < self.fresh_until:
            return EntryState.FRESH
        if now < self.stale_until:
            return EntryState.STALE
        return EntryState.EXPIRED

    def is_expired(self, now: datetime) -> bool:
        return self.state(now) is EntryState.EXPIRED

    def is_stale(self, now: datetime) -> bool:
        return self.state(now) is EntryState.STALE


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup."""

    data: T
    is_stale: bool
    created_at: datetime


@dataclass
class NamespaceStats:
    """Per-namespace cache statistics."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0
    revalidations: int = 0
    revalidation_failures: int = 0
    size: int = 0
    max_size: int = 0
    memory_usage: int = 0
    last_accessed: datetime | None = None

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def reset(self) -> None:
        """Reset counters."""
        self.hits = 0
        self.stale_hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0
        self.expirations = 0
        self.invalidations = 0
        self.revalidations = 0
        self.revalidation_failures = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "stale_hits": self.stale_hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "invalidations": self.invalidations,
            "revalidations": self.revalidations,
            "revalidation_failures": self.revalidation_failures,
            "size": self.size,
            "max_size": self.max_size,
            "memory_usage": self.memory_usage,
            "hit_rate": f"{self.hit_rate:.2%}",
            "last_accessed": (
                self.last_accessed.isoformat() if self.last_accessed else None
            ),
        }


class NamespaceStore:
    """
    Storage for a single namespace.

    Keys here are storage keys: the caller's key, prefixed with the user id
    for user-scoped namespaces. The registry does that mapping.

    Usage:
        store = NamespaceStore(CacheNamespaceConfig(name="places", max_size=2))
        store.put("lisbon", "Lisbon, Portugal")
        result = store.get("lisbon")
    """

    def __init__(
        self,
        config: CacheNamespaceConfig,
        clock: Callable[[], datetime] = datetime.now,
        compression_threshold: int = 1024,
        debug: bool = False,
    ):
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._clock = clock
        self._compression_threshold = compression_threshold
        self._debug = debug
        self._stats = NamespaceStats()
        self._memory_usage = 0
        self.configure(config)

    @property
    def config(self) -> CacheNamespaceConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def codec(self) -> ValueCodec:
        return self._codec

    def configure(self, config: CacheNamespaceConfig) -> None:
        """Apply a (re-)registered config to subsequent operations."""
        self._config = config
        self._codec = ValueCodec(config.value_type, self._compression_threshold)

    def get(self, storage_key: str, user_id: str | None = None) -> CacheResult[Any] | None:
        """
        Get a usable (fresh or stale) value.

        Expired entries are removed. With user_id, an entry written by
        another user is treated as a miss.
        """
        now = self._clock()
        self._stats.last_accessed = now
        entry = self._entries.get(storage_key)

        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {storage_key[:50]}...")
            return None

        if self._config.user_scoped and entry.user_id != user_id:
            self._stats.misses += 1
            self._log(f"MISS (other user): {storage_key[:50]}...")
            return None

        state = entry.state(now)
        if state is EntryState.EXPIRED:
            self._remove(storage_key)
            self._stats.misses += 1
            self._stats.expirations += 1
            self._log(f"EXPIRED: {storage_key[:50]}...")
            return None

        entry.hits += 1
        entry.last_accessed = now
        self._entries.move_to_end(storage_key)

        is_stale = state is EntryState.STALE
        if is_stale:
            self._stats.stale_hits += 1
            self._log(f"STALE HIT: {storage_key[:50]}...")
        else:
            self._stats.hits += 1
            self._log(f"HIT: {storage_key[:50]}...")

        return CacheResult(
            data=self._value_of(entry),
            is_stale=is_stale,
            created_at=entry.created_at,
        )

    def peek(self, storage_key: str) -> CacheEntry[Any] | None:
        """Entry without touching LRU order or counters."""
        return self._entries.get(storage_key)

    def put(
        self,
        storage_key: str,
        value: Any,
        ttl: timedelta | None = None,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> CacheEntry[Any]:
        """
        Store a value, evicting first if the namespace is full.

        Args:
            storage_key: Storage key
            value: Value to cache
            ttl: Fresh TTL override (stale window keeps its configured width)
            user_id: Owner for user-scoped namespaces
            created_at: Original timestamp (used when hydrating)

        Returns:
            The stored entry
        """
        entry = self.build_entry(storage_key, value, ttl, user_id, created_at)
        self.put_entry(storage_key, entry)
        return entry

    def put_entry(self, storage_key: str, entry: CacheEntry[Any]) -> list[str]:
        """Store a prepared entry; returns storage keys evicted for room."""
        evicted = self.admit(storage_key, entry)
        self._stats.sets += 1
        return evicted

    def build_entry(
        self,
        storage_key: str,
        value: Any,
        ttl: timedelta | None = None,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> CacheEntry[Any]:
        """Create an entry for this namespace's policy without storing it."""
        config = self._config
        fresh_ttl = ttl if ttl is not None else config.ttl
        stale_ttl = fresh_ttl + (config.effective_stale_ttl - config.ttl)

        compressed: bytes | None = None
        size = 0
        if config.compression:
            try:
                payload, is_compressed = self._codec.encode(value, compress=True)
            except CacheError as e:
                logger.warning(f"[{config.name}] Storing uncompressed: {e}")
            else:
                if is_compressed:
                    compressed = payload
                size = len(payload)
        if not size:
            size = self._codec.estimate_size(value)

        return CacheEntry(
            key=storage_key,
            value=value,
            created_at=created_at or self._clock(),
            ttl=fresh_ttl,
            stale_ttl=stale_ttl,
            user_id=user_id,
            compressed=compressed,
            size_bytes=size,
        )

    def admit(self, storage_key: str, entry: CacheEntry[Any]) -> list[str]:
        """Insert or replace an entry; returns storage keys evicted for room."""
        evicted: list[str] = []
        existing = self._entries.pop(storage_key, None)
        if existing is not None:
            self._memory_usage -= existing.size_bytes

        while len(self._entries) >= self._config.max_size:
            victim = self._choose_victim()
            if victim is None:
                break
            self._remove(victim)
            self._stats.evictions += 1
            evicted.append(victim)
            self._log(f"EVICT: {victim[:50]}...")

        self._entries[storage_key] = entry
        self._memory_usage += entry.size_bytes
        self._log(f"SET: {storage_key[:50]}... (TTL: {entry.ttl.total_seconds()}s)")
        return evicted

    def _choose_victim(self) -> str | None:
        """Expired first, then stale, then least recently used."""
        if not self._entries:
            return None

        now = self._clock()
        first_stale: str | None = None
        for key, entry in self._entries.items():
            state = entry.state(now)
            if state is EntryState.EXPIRED:
                return key
            if state is EntryState.STALE and first_stale is None:
                first_stale = key

        if first_stale is not None:
            return first_stale
        return next(iter(self._entries))

    def delete(self, storage_key: str) -> bool:
        """Delete a specific key."""
        if storage_key not in self._entries:
            return False
        self._remove(storage_key)
        self._stats.invalidations += 1
        self._log(f"DELETE: {storage_key[:50]}...")
        return True

    def invalidate(self, predicate: Callable[[str, CacheEntry[Any]], bool]) -> list[str]:
        """Remove every entry matching predicate; returns removed keys."""
        keys = [k for k, e in self._entries.items() if predicate(k, e)]
        for key in keys:
            self._remove(key)
        if keys:
            self._stats.invalidations += len(keys)
            self._log(f"INVALIDATE: {len(keys)} entries")
        return keys

    def clear(self) -> int:
        """Clear all entries."""
        count = len(self._entries)
        self._entries.clear()
        self._memory_usage = 0
        self._stats.invalidations += count
        self._log(f"CLEAR: {count} entries removed")
        return count

    def cleanup_expired(self) -> list[str]:
        """Remove entries past their stale TTL; returns removed keys."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            self._remove(key)
        if expired:
            self._stats.expirations += len(expired)
            self._log(f"CLEANUP: {len(expired)} expired entries removed")
        return expired

    def record_revalidation(self, succeeded: bool) -> None:
        """Count a background refresh outcome."""
        if succeeded:
            self._stats.revalidations += 1
        else:
            self._stats.revalidation_failures += 1

    def keys(self) -> list[str]:
        """Storage keys in LRU order (least recent first)."""
        return list(self._entries.keys())

    def entries(self) -> Iterator[tuple[str, CacheEntry[Any]]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, storage_key: str) -> bool:
        return storage_key in self._entries

    def get_stats(self) -> NamespaceStats:
        """Get namespace statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._config.max_size
        self._stats.memory_usage = self._memory_usage
        return self._stats

    def _value_of(self, entry: CacheEntry[Any]) -> Any:
        # Hydrated entries carry only the compressed payload until first read
        if entry.value is None and entry.compressed is not None:
            entry.value = self._codec.decode(entry.compressed, compressed=True)
        return entry.value

    def _remove(self, storage_key: str) -> None:
        entry = self._entries.pop(storage_key, None)
        if entry is not None:
            self._memory_usage -= entry.size_bytes

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[{self._config.name}] {message}")
