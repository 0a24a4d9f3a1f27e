"""
Shared test fixtures.

Provides:
- FakeRedis: dict-backed async Redis stand-in with a controllable clock
- an upstream stand-in built on httpx.MockTransport that records calls
- an async HTTP client bound to the app with dependencies on app.state
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from weather_api.config import Settings
from weather_api.lookup import CachedLookupService
from weather_api.redis_cache import RedisCache
from weather_api.weather_client import WeatherClient

BASE_URL = "https://weather.test/timeline"
API_KEY = "test-key"


# ---------------------------------------------------------------------------
# FakeRedis
# ---------------------------------------------------------------------------

class FakeRedis:
    """
    Minimal dict-backed Redis fake implementing the operations used by
    RedisCache: get, set (with ex), delete, ping, aclose.
    """

    def __init__(self) -> None:
        self._store: Dict[str, Tuple[str, Optional[float]]] = {}
        self.now = 0.0
        self.fail_reads = False
        self.fail_writes = False
        # Per-call read latency; the value is taken when the read is issued
        self.read_delays: List[float] = []
        self.set_calls: List[Tuple[str, str, Optional[int]]] = []
        self.closed = False

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _alive(self, key: str) -> bool:
        entry = self._store.get(key)
        if entry is None:
            return False
        _, deadline = entry
        if deadline is not None and self.now >= deadline:
            del self._store[key]
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise RedisConnectionError("connection refused")
        value = self._store[key][0] if self._alive(key) else None
        delay = self.read_delays.pop(0) if self.read_delays else 0
        if delay:
            await asyncio.sleep(delay)
        return value

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        if self.fail_writes:
            raise RedisConnectionError("connection refused")
        self.set_calls.append((key, value, ex))
        self._store[key] = (value, self.now + ex if ex else None)
        return True

    async def delete(self, key: str) -> int:
        return 1 if self._store.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        if self.fail_reads:
            raise RedisConnectionError("connection refused")
        return True

    async def aclose(self) -> None:
        self.closed = True

    def ttl_of(self, key: str) -> Optional[float]:
        if not self._alive(key):
            return None
        deadline = self._store[key][1]
        return None if deadline is None else deadline - self.now

    def has(self, key: str) -> bool:
        return self._alive(key)


# ---------------------------------------------------------------------------
# Upstream
# ---------------------------------------------------------------------------

class FakeUpstream:
    """
    Weather provider stand-in.

    Answers every request with `status` and `body`, optionally after a
    delay so concurrent callers overlap.
    """

    def __init__(self, status: int = 200, body: str = '{"resolvedAddress": "London"}', delay: float = 0.0):
        self.status = status
        self.body = body
        self.delay = delay
        self.requests: List[httpx.Request] = []
        self.error: Optional[Exception] = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, text=self.body)

    @property
    def calls(self) -> int:
        return len(self.requests)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> RedisCache:
    return RedisCache(fake_redis)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def weather_client(upstream: FakeUpstream):
    client = WeatherClient(API_KEY, base_url=BASE_URL, transport=httpx.MockTransport(upstream))
    yield client
    await client.close()


@pytest.fixture
def service(cache: RedisCache, weather_client: WeatherClient) -> CachedLookupService:
    return CachedLookupService(cache, weather_client, ttl=3600, negative_ttl=60)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        weather_api_key=API_KEY,
        redis_url="localhost",
        weather_api_base_url=BASE_URL,
    )


@pytest.fixture
def app(settings: Settings, cache: RedisCache, service: CachedLookupService):
    """FastAPI app with the lifespan's objects injected directly."""
    from app import app as _app

    _app.state.settings = settings
    _app.state.cache = cache
    _app.state.lookup = service
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
