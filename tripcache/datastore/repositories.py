"""
Repository layer - data access for persisted cache entries.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tripcache.datastore.models import CacheEntryDB


class CacheEntryRepository:
    """Persisted cache entry repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_namespace(self, namespace: str) -> list[CacheEntryDB]:
        """All rows of a namespace, newest first."""
        result = await self.session.execute(
            select(CacheEntryDB)
            .where(CacheEntryDB.namespace == namespace)
            .order_by(CacheEntryDB.created_at.desc())
        )
        return list(result.scalars().all())

    async def upsert(
        self,
        namespace: str,
        storage_key: str,
        payload: bytes,
        compressed: bool,
        created_at: datetime,
        ttl_seconds: float,
        stale_ttl_seconds: float,
        expires_at: datetime,
        user_id: str | None = None,
    ) -> None:
        """Insert or replace one entry."""
        result = await self.session.execute(
            select(CacheEntryDB).where(
                CacheEntryDB.namespace == namespace,
                CacheEntryDB.storage_key == storage_key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = CacheEntryDB(namespace=namespace, storage_key=storage_key)
            self.session.add(row)

        row.user_id = user_id
        row.payload = payload
        row.compressed = compressed
        row.created_at = created_at
        row.ttl_seconds = ttl_seconds
        row.stale_ttl_seconds = stale_ttl_seconds
        row.expires_at = expires_at

    async def delete(self, namespace: str, storage_keys: list[str]) -> int:
        """Delete specific keys of a namespace."""
        if not storage_keys:
            return 0
        result = await self.session.execute(
            delete(CacheEntryDB).where(
                CacheEntryDB.namespace == namespace,
                CacheEntryDB.storage_key.in_(storage_keys),
            )
        )
        return result.rowcount or 0

    async def delete_namespace(self, namespace: str) -> int:
        """Delete every row of a namespace."""
        result = await self.session.execute(
            delete(CacheEntryDB).where(CacheEntryDB.namespace == namespace)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete rows past their stale TTL across all namespaces."""
        result = await self.session.execute(
            delete(CacheEntryDB).where(CacheEntryDB.expires_at <= now)
        )
        deleted = result.rowcount or 0
        if deleted > 0:
            logger.debug(f"Cleaned up {deleted} expired persisted cache entries")
        return deleted
