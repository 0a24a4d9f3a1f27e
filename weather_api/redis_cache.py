"""
Redis-backed cache with TTL support.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from weather_api.errors import CacheReadFailed, CacheUnavailable, CacheWriteFailed

logger = logging.getLogger(__name__)

DEFAULT_REDIS_PORT = 6379


def build_redis_url(redis_url: str) -> str:
    """
    Turn REDIS_URL into a connection URL.

    A bare host (the form older deployments use) gets the default port and db 0.
    """
    if "://" in redis_url:
        return redis_url
    if ":" in redis_url:
        return f"redis://{redis_url}/0"
    return f"redis://{redis_url}:{DEFAULT_REDIS_PORT}/0"


class RedisCache:
    """
    Redis-backed cache.

    Expiration is left to Redis itself: values are written with SET ... EX
    and simply disappear once their TTL has elapsed.
    """

    def __init__(self, client):
        """
        Initialize cache.

        Args:
            client: An async Redis client (redis.asyncio compatible) created
                    with decode_responses=True
        """
        self._redis = client

    @classmethod
    def from_url(cls, redis_url: str, password: Optional[str] = None) -> "RedisCache":
        """
        Create a cache with its own client.

        Args:
            redis_url: Host name or redis:// URL
            password: Optional password (overrides one in the URL)
        """
        client = aioredis.from_url(
            build_redis_url(redis_url),
            password=password or None,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        return cls(client)

    async def connect(self):
        """
        Check the connection.

        Raises:
            CacheUnavailable: If Redis does not answer PING
        """
        try:
            await self._redis.ping()
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Failed to connect to Redis: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError):
            logger.warning("Redis PING failed", exc_info=True)
            return False

    async def get(self, key: str) -> Optional[str]:
        """
        Get cached value.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired

        Raises:
            CacheReadFailed: On Redis errors
        """
        try:
            value = await self._redis.get(key)
        except (RedisError, OSError) as e:
            raise CacheReadFailed(f"Redis GET failed for {key}: {e}") from e

        if not value:
            return None
        return value

    async def set(self, key: str, value: str, ttl: int):
        """
        Set cache value with expiration.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds

        Raises:
            CacheWriteFailed: On Redis errors
        """
        try:
            await self._redis.set(key, value, ex=ttl)
        except (RedisError, OSError) as e:
            raise CacheWriteFailed(f"Redis SET failed for {key}: {e}") from e

    async def delete(self, key: str):
        """
        Delete a specific cache entry.

        Args:
            key: Cache key to delete
        """
        try:
            await self._redis.delete(key)
        except (RedisError, OSError) as e:
            raise CacheWriteFailed(f"Redis DEL failed for {key}: {e}") from e

    async def close(self):
        """Close the Redis client."""
        await self._redis.aclose()
