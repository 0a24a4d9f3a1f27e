"""
Command line entry point.

    weather-api serve [--host HOST] [--port PORT]
    weather-api lookup LOCATION
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn

from weather_api.config import Settings, configure_logging, load_settings
from weather_api.errors import CacheUnavailable, ConfigError, InvalidInput, UpstreamUnavailable
from weather_api.normalizer import normalize_location
from weather_api.weather_client import WeatherClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weather-api", description="Cached weather lookup")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", help="Interface to bind (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Port to listen on (default: PORT or 8080)")

    lookup = subparsers.add_parser("lookup", help="Look up one location and print the payload")
    lookup.add_argument("location", help="City name or ZIP code")

    return parser


def serve(settings: Settings, host: Optional[str] = None, port: Optional[int] = None):
    """Run the FastAPI app under uvicorn until SIGINT/SIGTERM."""
    uvicorn.run(
        "app:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_grace,
    )


async def lookup_once(settings: Settings, raw_location: str) -> str:
    """
    Resolve a single location without starting a server.

    Uses the same cache and provider as the server does.
    """
    # Imported here so `serve` does not import the app module twice
    from app import build_cache, build_lookup_service

    location = normalize_location(
        raw_location,
        max_length=settings.location_max_length,
        key_prefix=settings.cache_key_prefix,
    )

    cache = build_cache(settings)
    client = WeatherClient(
        settings.weather_api_key,
        base_url=settings.weather_api_base_url,
        timeout=settings.upstream_timeout,
    )
    try:
        await cache.connect()
        service = build_lookup_service(settings, cache, client)
        result = await service.resolve(location)
        return result.payload
    finally:
        await client.close()
        await cache.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(e, file=sys.stderr)
        return EXIT_FAILURE

    configure_logging(settings.log_level)

    if args.command == "serve":
        serve(settings, args.host, args.port)
        return EXIT_OK

    try:
        payload = asyncio.run(lookup_once(settings, args.location))
    except InvalidInput as e:
        print(e, file=sys.stderr)
        return EXIT_INVALID_INPUT
    except (UpstreamUnavailable, CacheUnavailable) as e:
        print(e, file=sys.stderr)
        return EXIT_FAILURE

    print(payload)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
