"""
Tests for the command line entry point.
"""

from unittest.mock import AsyncMock, patch

import pytest

from weather_api import cli
from weather_api.errors import CacheUnavailable, InvalidInput, UpstreamUnavailable

ENV = {"WEATHER_API_KEY": "abc123", "REDIS_URL": "localhost"}


@pytest.fixture
def env(monkeypatch):
    monkeypatch.chdir("/")
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)


def test_missing_config_exits_1(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WEATHER_API_KEY", raising=False)

    assert cli.main(["lookup", "London"]) == cli.EXIT_FAILURE
    assert "WEATHER_API_KEY" in capsys.readouterr().err


def test_lookup_prints_payload(env, capsys):
    with patch.object(cli, "lookup_once", AsyncMock(return_value='{"temp": 15}')) as lookup_once:
        assert cli.main(["lookup", "London"]) == cli.EXIT_OK

    assert capsys.readouterr().out.strip() == '{"temp": 15}'
    assert lookup_once.await_args.args[1] == "London"


@pytest.mark.parametrize("error,code", [
    (InvalidInput("Location cannot be empty"), cli.EXIT_INVALID_INPUT),
    (UpstreamUnavailable("Request failed with status code: 500", 500), cli.EXIT_FAILURE),
    (CacheUnavailable("Failed to connect to Redis"), cli.EXIT_FAILURE),
])
def test_lookup_failures(env, capsys, error, code):
    with patch.object(cli, "lookup_once", AsyncMock(side_effect=error)):
        assert cli.main(["lookup", "London"]) == code

    assert str(error) in capsys.readouterr().err


def test_serve_runs_uvicorn_with_grace_period(env):
    with patch.object(cli.uvicorn, "run") as run:
        assert cli.main(["serve", "--port", "9000"]) == cli.EXIT_OK

    run.assert_called_once_with(
        "app:app",
        host="0.0.0.0",
        port=9000,
        log_level="info",
        timeout_graceful_shutdown=10,
    )


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])


@pytest.mark.asyncio
async def test_lookup_once_uses_cache_and_closes_clients(env, fake_redis):
    from weather_api.config import load_settings
    from weather_api.normalizer import normalize_location
    from weather_api.redis_cache import RedisCache

    settings = load_settings()
    await fake_redis.set(normalize_location("London").cache_key, '{"cached": true}')

    with patch("app.build_cache", return_value=RedisCache(fake_redis)):
        payload = await cli.lookup_once(settings, "London")

    assert payload == '{"cached": true}'
    assert fake_redis.closed


@pytest.mark.asyncio
async def test_lookup_once_rejects_before_connecting(env):
    from weather_api.config import load_settings

    with patch("app.build_cache") as build_cache:
        with pytest.raises(InvalidInput):
            await cli.lookup_once(load_settings(), "   ")

    build_cache.assert_not_called()


@pytest.mark.asyncio
async def test_lookup_once_closes_clients_when_cache_unreachable(env):
    from weather_api.config import load_settings

    unreachable = AsyncMock()
    unreachable.connect.side_effect = CacheUnavailable("Failed to connect to Redis")

    with patch("app.build_cache", return_value=unreachable):
        with pytest.raises(CacheUnavailable):
            await cli.lookup_once(load_settings(), "London")

    unreachable.close.assert_awaited_once()
