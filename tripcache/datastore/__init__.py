"""Persistent storage for cache entries (SQLAlchemy async on aiosqlite)."""
