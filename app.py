import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from weather_api.config import Settings, configure_logging, load_settings
from weather_api.errors import InvalidInput, UpstreamUnavailable
from weather_api.lookup import CachedLookupService, WeatherResult
from weather_api.normalizer import normalize_location
from weather_api.pages import FORM_PAGE, render_result
from weather_api.redis_cache import RedisCache
from weather_api.sql_cache import SqlCache
from weather_api.weather_client import WeatherClient

logger = logging.getLogger(__name__)


def build_cache(settings: Settings):
    """Create the cache store selected by CACHE_BACKEND."""
    if settings.cache_backend == "sql":
        return SqlCache.from_url(settings.database_url)
    return RedisCache.from_url(settings.redis_url, settings.redis_password)


def build_lookup_service(settings: Settings, cache, client: WeatherClient) -> CachedLookupService:
    return CachedLookupService(
        cache,
        client,
        ttl=settings.cache_ttl,
        ttl_jitter=settings.cache_ttl_jitter,
        negative_ttl=settings.negative_cache_ttl,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown."""
    # Startup: a missing key or an unreachable cache stops the server here
    settings = load_settings()
    configure_logging(settings.log_level)

    cache = build_cache(settings)
    await cache.connect()
    logger.info("Connected to %s cache", settings.cache_backend)

    client = WeatherClient(
        settings.weather_api_key,
        base_url=settings.weather_api_base_url,
        timeout=settings.upstream_timeout,
    )

    app.state.settings = settings
    app.state.cache = cache
    app.state.lookup = build_lookup_service(settings, cache, client)

    yield

    # Shutdown: release the shared clients
    await client.close()
    await cache.close()
    logger.info("Graceful shutdown complete.")


app = FastAPI(
    title="weather-api",
    description="Cached weather lookup by city name or ZIP code",
    version="0.1.0",
    lifespan=lifespan
)


@app.exception_handler(InvalidInput)
async def invalid_input_handler(_: Request, exc: InvalidInput):
    return PlainTextResponse(str(exc), status_code=400)


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(_: Request, exc: UpstreamUnavailable):
    if exc.not_found:
        return PlainTextResponse("City not found", status_code=404)
    return PlainTextResponse("Weather provider unavailable", status_code=502)


async def lookup_weather(request: Request, raw_location: str) -> WeatherResult:
    """
    Normalize a raw location and resolve it through the cache.

    Raises:
        InvalidInput: Before any cache or upstream I/O
        UpstreamUnavailable: If the provider failed
    """
    settings: Settings = request.app.state.settings
    location = normalize_location(
        raw_location,
        max_length=settings.location_max_length,
        key_prefix=settings.cache_key_prefix,
    )
    lookup: CachedLookupService = request.app.state.lookup
    return await lookup.resolve(location)


@app.get("/", response_class=HTMLResponse)
def read_root():
    return HTMLResponse(FORM_PAGE)


@app.post("/", response_class=PlainTextResponse)
async def submit_location(request: Request, city: str = Form("")):
    """
    Look up weather for the submitted form field.

    The field is named `city` but ZIP codes are accepted too.
    """
    result = await lookup_weather(request, city)
    return PlainTextResponse(render_result(result.location, result.payload))


@app.get("/weather/{location}")
async def get_weather(request: Request, location: str):
    """Raw provider payload for a location, with X-Cache set to HIT or MISS."""
    result = await lookup_weather(request, location)
    return Response(
        content=result.payload,
        media_type="application/json",
        headers={"X-Cache": "HIT" if result.from_cache else "MISS"},
    )


@app.get("/health")
async def health(request: Request):
    if await request.app.state.cache.ping():
        return {"status": "ok"}
    return JSONResponse({"status": "degraded"}, status_code=503)
