"""
Error types for weather-api.
"""

from typing import Optional


class WeatherAPIError(Exception):
    """Base error for weather-api."""
    pass


class ConfigError(WeatherAPIError):
    """Required configuration is missing or invalid."""
    pass


class InvalidInput(WeatherAPIError):
    """Submitted location was rejected by the normalizer."""
    pass


class UpstreamUnavailable(WeatherAPIError):
    """Weather provider could not be reached or returned a non-success status."""
    def __init__(self, message: str, status_code: Optional[int] = None, cached: bool = False):
        super().__init__(message)
        self.status_code = status_code
        # True when raised from a negative cache entry instead of a live call
        self.cached = cached

    @property
    def not_found(self) -> bool:
        """Provider answered but did not recognise the location."""
        return self.status_code in (400, 404)


class CacheError(WeatherAPIError):
    """Cache store error."""
    pass


class CacheUnavailable(CacheError):
    """Cache store could not be reached at startup."""
    pass


class CacheReadFailed(CacheError):
    """Reading from the cache store failed."""
    pass


class CacheWriteFailed(CacheError):
    """Writing to the cache store failed."""
    pass
