"""
Weather provider HTTP client.
Talks to the Visual Crossing timeline API by default.
"""

import logging
from typing import Optional

import httpx

from weather_api.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://weather.visualcrossing.com/VisualCrossingWebServices/rest/services/timeline"
DEFAULT_TIMEOUT = 10.0


class WeatherClient:
    """
    Weather provider client.

    The location is sent as a path segment and the API key as the `key`
    query parameter, which is what the timeline API expects.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize weather client.

        Args:
            api_key: Provider API key
            base_url: Endpoint the location path segment is appended to
            timeout: Deadline in seconds for a single upstream call
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def _build_url(self, query_token: str) -> str:
        return f"{self.base_url}/{query_token}"

    async def fetch(self, query_token: str) -> str:
        """
        Fetch raw weather data for a location.

        Args:
            query_token: Location already encoded as a URL path segment

        Returns:
            Response body text, unparsed

        Raises:
            UpstreamUnavailable: On network errors, timeouts or non-200 responses
        """
        url = self._build_url(query_token)

        try:
            response = await self.client.get(url, params={"key": self.api_key})
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Request timed out: {e}", None) from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Request error: {e}", None) from e

        if response.status_code != 200:
            raise UpstreamUnavailable(
                f"Request failed with status code: {response.status_code}",
                status_code=response.status_code
            )

        logger.info("Fetched weather for %s (%d bytes)", query_token, len(response.content))
        return response.text
