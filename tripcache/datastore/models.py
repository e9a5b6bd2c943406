"""
Database models for persisted cache entries.
SQLAlchemy 2.0+ declarative mapping.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models."""

    pass


class CacheEntryDB(Base):
    """One persisted cache entry."""

    __tablename__ = "cache_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    storage_key: Mapped[str] = mapped_column(String(1000), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    compressed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ttl_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    stale_ttl_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("namespace", "storage_key", name="uq_cache_namespace_key"),
    )

    def __repr__(self) -> str:
        return f"<CacheEntry(namespace={self.namespace}, key={self.storage_key[:50]})>"
