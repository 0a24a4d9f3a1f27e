"""
Cached weather lookup.

Read-through cache in front of the weather provider:

  - Check the cache first (key: LocationKey.cache_key)
  - On hit: return the stored payload verbatim
  - On miss: call the provider once per key, however many requests are
    waiting for it, write the payload with a TTL and return it

Upstream failures are remembered for a short while under
"<cache_key>:miss" so an outage is not hammered by every request.
The cache is best-effort: read failures count as misses and write
failures are logged, never returned to the caller.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Dict

from weather_api.errors import CacheReadFailed, CacheWriteFailed, UpstreamUnavailable
from weather_api.normalizer import LocationKey
from weather_api.weather_client import WeatherClient

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600
DEFAULT_NEGATIVE_TTL = 60

_NEGATIVE_SUFFIX = ":miss"


@dataclass(frozen=True)
class WeatherResult:
    """Weather payload for one location."""
    location: LocationKey
    payload: str
    from_cache: bool


def _negative_key(cache_key: str) -> str:
    return f"{cache_key}{_NEGATIVE_SUFFIX}"


class CachedLookupService:
    """
    Resolves locations to weather payloads through a cache.

    Usage:
        service = CachedLookupService(RedisCache.from_url(url), WeatherClient(api_key))
        result = await service.resolve(normalize_location("London"))
    """

    def __init__(
        self,
        cache,
        client: WeatherClient,
        ttl: int = DEFAULT_TTL,
        ttl_jitter: int = 0,
        negative_ttl: int = DEFAULT_NEGATIVE_TTL,
    ):
        """
        Args:
            cache: RedisCache or SqlCache (anything with async get/set)
            client: Weather provider client
            ttl: Seconds a fetched payload stays cached
            ttl_jitter: Maximum random offset in seconds applied to ttl.
                        For example, 360 means ±360 seconds (±6 minutes).
            negative_ttl: Seconds an upstream failure is remembered, 0 disables
        """
        self._cache = cache
        self._client = client
        self.ttl = ttl
        self.ttl_jitter = ttl_jitter
        self.negative_ttl = negative_ttl
        self._in_flight: Dict[str, asyncio.Task] = {}

    def _get_effective_ttl(self) -> int:
        if self.ttl_jitter == 0:
            return self.ttl
        return max(1, int(self.ttl + random.uniform(-self.ttl_jitter, self.ttl_jitter)))

    async def _read(self, key: str):
        try:
            return await self._cache.get(key)
        except CacheReadFailed:
            logger.warning("Cache read failed for key=%s, treating as miss", key, exc_info=True)
            return None

    async def _write(self, key: str, value: str, ttl: int):
        try:
            await self._cache.set(key, value, ttl)
            logger.debug("Cached key=%s ttl=%ds", key, ttl)
        except CacheWriteFailed:
            logger.warning("Cache write failed for key=%s, serving uncached", key, exc_info=True)

    async def resolve(self, location: LocationKey) -> WeatherResult:
        """
        Get weather data for a location.

        Args:
            location: Normalized location

        Returns:
            WeatherResult, from the cache when an unexpired entry exists

        Raises:
            UpstreamUnavailable: If the provider failed now or within the negative TTL
        """
        key = location.cache_key

        cached = await self._read(key)
        if cached:
            logger.debug("Cache hit: %s", key)
            return WeatherResult(location=location, payload=cached, from_cache=True)

        logger.debug("Cache miss: %s", key)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._populate(location))
            self._in_flight[key] = task
            task.add_done_callback(lambda t: self._finish(key, t))
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        # A cancelled caller must not cancel the fetch other callers wait on
        payload = await asyncio.shield(task)
        return WeatherResult(location=location, payload=payload, from_cache=False)

    def _finish(self, key: str, task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved in case every waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def _populate(self, location: LocationKey) -> str:
        key = location.cache_key
        negative_key = _negative_key(key)

        # A fetch that finished while this caller was still reading may have filled it
        cached = await self._read(key)
        if cached:
            return cached

        if self.negative_ttl:
            marker = await self._read(negative_key)
            if marker is not None:
                raise UpstreamUnavailable(
                    f"Upstream failed recently for {location.display}",
                    status_code=int(marker) if marker.isdigit() and marker != "0" else None,
                    cached=True,
                )

        try:
            payload = await self._client.fetch(location.query_token)
        except UpstreamUnavailable as e:
            logger.warning("Upstream lookup failed for %s: %s", location.display, e)
            if self.negative_ttl:
                await self._write(negative_key, str(e.status_code or 0), self.negative_ttl)
            raise

        await self._write(key, payload, self._get_effective_ttl())
        return payload

    @property
    def in_flight(self) -> int:
        """Number of upstream fetches currently outstanding."""
        return len(self._in_flight)
