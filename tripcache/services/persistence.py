"""
CachePersistence - Durable storage for namespaces with persistence enabled.

Entries are written through on set and removed on delete/clear. Loading a
namespace keeps each entry's original timestamp, so anything whose TTL ran
out while the process was down comes back stale (and is revalidated on first
access), and anything past its stale TTL is dropped from storage.
"""

from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from tripcache.datastore.engine import CacheDatabase
from tripcache.datastore.repositories import CacheEntryRepository
from tripcache.services.cache import CacheEntry, CacheNamespaceConfig
from tripcache.services.serializer import ValueCodec


class CachePersistence:
    """Bridges CacheEntry objects and CacheEntryDB rows."""

    def __init__(self, database: CacheDatabase):
        self._db = database

    async def load(
        self,
        config: CacheNamespaceConfig,
        codec: ValueCodec,
        now: datetime,
    ) -> list[CacheEntry[Any]]:
        """
        Load a namespace's usable entries, oldest first.

        Rows past their stale TTL, rows beyond max_size and rows that no
        longer decode are deleted from storage.
        """
        entries: list[CacheEntry[Any]] = []
        discard: list[str] = []

        async with self._db.session() as session:
            repo = CacheEntryRepository(session)
            for row in await repo.list_namespace(config.name):
                if row.expires_at <= now or len(entries) >= config.max_size:
                    discard.append(row.storage_key)
                    continue

                try:
                    value = None if row.compressed else codec.decode(row.payload)
                except ValueError as e:
                    logger.warning(
                        f"[{config.name}] Dropping undecodable persisted entry "
                        f"{row.storage_key[:50]}: {e}"
                    )
                    discard.append(row.storage_key)
                    continue

                entries.append(
                    CacheEntry(
                        key=row.storage_key,
                        value=value,
                        created_at=row.created_at,
                        ttl=timedelta(seconds=row.ttl_seconds),
                        stale_ttl=timedelta(seconds=row.stale_ttl_seconds),
                        user_id=row.user_id,
                        compressed=row.payload if row.compressed else None,
                        size_bytes=len(row.payload),
                    )
                )

            if discard:
                await repo.delete(config.name, discard)

        if entries or discard:
            logger.info(
                f"[{config.name}] Loaded {len(entries)} persisted entries, "
                f"discarded {len(discard)}"
            )
        entries.reverse()
        return entries

    async def save(
        self,
        namespace: str,
        entry: CacheEntry[Any],
        codec: ValueCodec,
    ) -> None:
        """Write one entry through to storage."""
        if entry.compressed is not None:
            payload, compressed = entry.compressed, True
        else:
            payload, compressed = codec.dumps(entry.value), False

        async with self._db.session() as session:
            await CacheEntryRepository(session).upsert(
                namespace=namespace,
                storage_key=entry.key,
                payload=payload,
                compressed=compressed,
                created_at=entry.created_at,
                ttl_seconds=entry.ttl.total_seconds(),
                stale_ttl_seconds=entry.stale_ttl.total_seconds(),
                expires_at=entry.stale_until,
                user_id=entry.user_id,
            )

    async def delete(self, namespace: str, storage_keys: list[str]) -> int:
        """Delete specific entries."""
        async with self._db.session() as session:
            return await CacheEntryRepository(session).delete(namespace, storage_keys)

    async def delete_namespace(self, namespace: str) -> int:
        """Delete every entry of a namespace."""
        async with self._db.session() as session:
            return await CacheEntryRepository(session).delete_namespace(namespace)

    async def delete_expired(self, now: datetime) -> int:
        """Delete entries past their stale TTL."""
        async with self._db.session() as session:
            return await CacheEntryRepository(session).delete_expired(now)
