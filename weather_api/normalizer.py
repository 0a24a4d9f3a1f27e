"""
Location input normalization.

Turns raw form input into a LocationKey carrying separate forms for the
cache, the upstream URL and HTML output.
"""

import html
import unicodedata
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from weather_api.errors import InvalidInput

DEFAULT_MAX_LENGTH = 50
DEFAULT_KEY_PREFIX = "weather:"

# Besides letters, marks and numbers, the punctuation real place names use
_ALLOWED_PUNCTUATION = frozenset(" '.,-")


@dataclass(frozen=True)
class LocationKey:
    """Normalized location (city name or ZIP code)."""
    display: str
    cache_key: str

    @property
    def query_token(self) -> str:
        """Location encoded as a single URL path segment."""
        return quote(self.display, safe="")

    @property
    def html(self) -> str:
        """Location escaped for echoing into HTML."""
        return html.escape(self.display)


def _canonical(display: str) -> str:
    return unicodedata.normalize("NFC", display).casefold()


def _allowed(ch: str) -> bool:
    # L: letters, M: combining marks (Devanagari, Thai vowel signs), N: digits
    return ch in _ALLOWED_PUNCTUATION or unicodedata.category(ch)[0] in "LMN"


def normalize_location(
    raw: Optional[str],
    max_length: int = DEFAULT_MAX_LENGTH,
    key_prefix: str = DEFAULT_KEY_PREFIX,
) -> LocationKey:
    """
    Validate and canonicalize a raw location string.

    Args:
        raw: Value of the submitted form field (may be None)
        max_length: Maximum length after trimming
        key_prefix: Namespace prepended to the cache key

    Returns:
        LocationKey

    Raises:
        InvalidInput: If the location is empty, too long or has disallowed characters
    """
    display = " ".join((raw or "").split())
    display = unicodedata.normalize("NFC", display)

    if not display:
        raise InvalidInput("Location cannot be empty")

    if len(display) > max_length:
        raise InvalidInput(f"Location cannot be longer than {max_length} characters")

    if not all(_allowed(ch) for ch in display):
        raise InvalidInput("Location contains invalid characters")

    return LocationKey(display=display, cache_key=f"{key_prefix}{_canonical(display)}")
