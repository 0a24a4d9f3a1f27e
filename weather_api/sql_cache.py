"""
SQLAlchemy-based cache with TTL support.
"""

import logging
import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from fastapi.concurrency import run_in_threadpool

from weather_api.database import create_db_engine, create_session_factory, db_context, init_db
from weather_api.db_models import CacheEntry
from weather_api.errors import CacheReadFailed, CacheUnavailable, CacheWriteFailed

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


class SqlCache:
    """
    Generic SQL-backed cache with automatic expiration.

    Each row stores its absolute expiration time; expired rows are
    reported as missing and deleted when read.
    """

    def __init__(self, engine: Engine):
        """
        Initialize cache.

        Args:
            engine: SQLAlchemy engine for the cache database
        """
        self.engine = engine
        self.session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlCache":
        return cls(create_db_engine(database_url))

    async def connect(self):
        """
        Create the schema and check the connection.

        Raises:
            CacheUnavailable: If the database cannot be reached
        """
        try:
            await run_in_threadpool(init_db, self.engine)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Failed to connect to database: {e}") from e

    async def ping(self) -> bool:
        def _ping():
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        try:
            await run_in_threadpool(_ping)
            return True
        except SQLAlchemyError:
            logger.warning("Cache database ping failed", exc_info=True)
            return False

    def _get(self, key: str) -> Optional[str]:
        with db_context(self.session_factory) as db:
            cache_entry = db.get(CacheEntry, key)

            if cache_entry is None:
                return None

            if cache_entry.expires_at <= _now():
                # Delete expired entry
                db.delete(cache_entry)
                return None

            return cache_entry.value

    async def get(self, key: str) -> Optional[str]:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        try:
            value = await run_in_threadpool(self._get, key)
        except SQLAlchemyError as e:
            raise CacheReadFailed(f"Cache read failed for {key}: {e}") from e
        return value or None

    def _set(self, key: str, value: str, ttl: int):
        with db_context(self.session_factory) as db:
            expires_at = _now() + ttl

            cache_entry = db.get(CacheEntry, key)
            if cache_entry:
                cache_entry.value = value
                cache_entry.expires_at = expires_at
            else:
                db.add(CacheEntry(key=key, value=value, expires_at=expires_at))

    async def set(self, key: str, value: str, ttl: int):
        """
        Set cache value with expiration.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds
        """
        try:
            await run_in_threadpool(self._set, key, value, ttl)
        except SQLAlchemyError as e:
            raise CacheWriteFailed(f"Cache write failed for {key}: {e}") from e

    def _delete(self, key: str):
        with db_context(self.session_factory) as db:
            cache_entry = db.get(CacheEntry, key)
            if cache_entry:
                db.delete(cache_entry)

    async def delete(self, key: str):
        """
        Delete a specific cache entry.

        Args:
            key: Cache key to delete
        """
        try:
            await run_in_threadpool(self._delete, key)
        except SQLAlchemyError as e:
            raise CacheWriteFailed(f"Cache delete failed for {key}: {e}") from e

    def clear_expired(self) -> int:
        """
        Clear all expired cache entries.

        Returns:
            Number of deleted rows
        """
        with db_context(self.session_factory) as db:
            return db.query(CacheEntry).filter(
                CacheEntry.expires_at <= _now()
            ).delete(synchronize_session=False)

    def clear_all(self):
        """Clear all cache entries."""
        with db_context(self.session_factory) as db:
            db.query(CacheEntry).delete(synchronize_session=False)

    async def close(self):
        """Dispose of the engine's connection pool."""
        await run_in_threadpool(self.engine.dispose)
