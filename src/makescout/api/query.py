"""URL and query string construction for the Make API."""

import math
import re
from collections.abc import Mapping, Sequence

import httpx
from beartype import beartype

QueryScalar = str | int | float | bool
QueryParam = QueryScalar | Sequence[QueryScalar] | None
Query = Mapping[str, QueryParam]

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_AUTH_SCHEME_RE = re.compile(r"^(token|bearer)\s+", re.IGNORECASE)


@beartype
def normalize_base_url(value: str) -> str:
    """Strip trailing slashes and default to https when no scheme is given."""
    trimmed = value.strip().rstrip("/")
    if _SCHEME_RE.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


@beartype
def normalize_authorization(value: str) -> str:
    """Prefix a bare API token with the ``Token`` scheme Make expects."""
    token = value.strip()
    if not token or _AUTH_SCHEME_RE.match(token):
        return token
    return f"Token {token}"


@beartype
def format_query_value(value: QueryScalar) -> str:
    """Render one scalar the way a browser's URLSearchParams would."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


@beartype
def build_url(base_url: str, path: str, query: Query | None = None) -> str:
    """Join ``path`` onto ``base_url`` and apply query parameters.

    Scalars replace any existing value for the key, sequences append one
    parameter per element, and None values are left out entirely.

    Args:
        base_url: Normalized base URL without trailing slash.
        path: API path, with or without a leading slash.
        query: Optional query parameters.

    Returns:
        The full URL as a string.
    """
    joined = f"{base_url}{path}" if path.startswith("/") else f"{base_url}/{path}"
    url = httpx.URL(joined)

    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, Sequence) and not isinstance(value, str):
            for item in value:
                url = url.copy_add_param(key, format_query_value(item))
            continue
        url = url.copy_set_param(key, format_query_value(value))

    return str(url)
