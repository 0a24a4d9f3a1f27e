"""
Configuration from environment variables.
"""

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from weather_api.errors import ConfigError
from weather_api.normalizer import DEFAULT_KEY_PREFIX, DEFAULT_MAX_LENGTH
from weather_api.weather_client import DEFAULT_BASE_URL

DEV_ENV_FILE = ".dev.env"

# Settings field -> environment variable
_ENV_VARS = {
    "weather_api_key": "WEATHER_API_KEY",
    "cache_backend": "CACHE_BACKEND",
    "redis_url": "REDIS_URL",
    "redis_password": "REDIS_PASSWORD",
    "database_url": "DATABASE_URL",
    "cache_ttl": "CACHE_TTL_SECONDS",
    "cache_ttl_jitter": "CACHE_TTL_JITTER_SECONDS",
    "negative_cache_ttl": "NEGATIVE_CACHE_TTL_SECONDS",
    "cache_key_prefix": "CACHE_KEY_PREFIX",
    "weather_api_base_url": "WEATHER_API_BASE_URL",
    "upstream_timeout": "UPSTREAM_TIMEOUT_SECONDS",
    "location_max_length": "LOCATION_MAX_LENGTH",
    "host": "HOST",
    "port": "PORT",
    "shutdown_grace": "SHUTDOWN_GRACE_SECONDS",
    "log_level": "LOG_LEVEL",
}


class Settings(BaseModel):
    """Runtime settings."""
    weather_api_key: str = Field(min_length=1)
    cache_backend: str = Field(default="redis", pattern=r"^(redis|sql)$")
    redis_url: str = ""
    redis_password: str = ""
    database_url: str = ""
    cache_ttl: int = Field(default=3600, gt=0)
    cache_ttl_jitter: int = Field(default=0, ge=0)
    negative_cache_ttl: int = Field(default=60, ge=0)
    cache_key_prefix: str = DEFAULT_KEY_PREFIX
    weather_api_base_url: str = DEFAULT_BASE_URL
    upstream_timeout: float = Field(default=10.0, gt=0)
    location_max_length: int = Field(default=DEFAULT_MAX_LENGTH, gt=0)
    host: str = "0.0.0.0"
    port: int = Field(default=8080, gt=0, lt=65536)
    shutdown_grace: int = Field(default=10, ge=0)
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_backend(self):
        if self.cache_backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL is required when CACHE_BACKEND is redis")
        if self.cache_backend == "sql" and not self.database_url:
            raise ValueError("DATABASE_URL is required when CACHE_BACKEND is sql")
        if self.cache_ttl_jitter >= self.cache_ttl:
            raise ValueError("CACHE_TTL_JITTER_SECONDS must be smaller than CACHE_TTL_SECONDS")
        return self


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from the environment.

    Loads .dev.env first when reading the real process environment.

    Args:
        environ: Mapping to read instead of os.environ

    Raises:
        ConfigError: If a required variable is missing or a value is invalid
    """
    if environ is None:
        if os.path.exists(DEV_ENV_FILE):
            load_dotenv(DEV_ENV_FILE)
        environ = os.environ

    values = {
        field: environ[var]
        for field, var in _ENV_VARS.items()
        if environ.get(var, "") != ""
    }

    if "weather_api_key" not in values:
        raise ConfigError("Please set the WEATHER_API_KEY environment variable")

    try:
        return Settings(**values)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            loc = error.get("loc") or ()
            var = _ENV_VARS.get(loc[0], loc[0]) if loc else None
            problems.append(f"{var}: {error['msg']}" if var else error["msg"])
        raise ConfigError("Invalid configuration: " + "; ".join(problems)) from e


def configure_logging(level: str):
    """
    Set up root logging for the server and CLI.

    httpx logs every request URL at INFO, and the provider key travels in
    the query string, so its loggers are held at WARNING.
    """
    logging.basicConfig(level=level.upper())
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
