"""
HTTP utilities for source adapters.

Translates httpx outcomes into the aggregator's error taxonomy. Retrying is
not done here: the orchestrator owns the retry policy for whole adapter calls.
"""

from typing import Any, Optional

import httpx
from loguru import logger

from aggregator.config import settings
from aggregator.errors import FormatChangeError, NetworkError, RateLimitError, SourceHTTPError


# Default headers for requests
DEFAULT_HEADERS = {
    "User-Agent": "uk-public-sector-orgs/0.1 (organisation aggregator)",
    "Accept": "application/json, text/csv, text/html, */*",
}

# Statuses treated as transient
TRANSIENT_STATUSES = frozenset({408, 500, 502, 503, 504})


def make_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Create an async client with the default headers and timeout."""
    return httpx.AsyncClient(
        timeout=timeout or settings.pipeline.http_timeout,
        headers=DEFAULT_HEADERS,
        follow_redirects=True,
    )


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds; HTTP-date forms are ignored."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    source_id: str | None = None,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> httpx.Response:
    """
    GET a URL and classify failures.

    Args:
        client: Shared async HTTP client
        url: URL to fetch
        source_id: Source the request is made for (attached to errors)
        params: Query parameters
        headers: Additional headers to include

    Returns:
        httpx.Response object

    Raises:
        NetworkError: Connection problems, timeouts and transient 5xx
        RateLimitError: When rate limited (429)
        SourceHTTPError: Any other 4xx/5xx
    """
    logger.debug(f"Fetching GET {url}")

    try:
        response = await client.get(url, params=params, headers=headers)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Timeout fetching {url}: {e}", source_id) from e
    except httpx.TransportError as e:
        raise NetworkError(f"Transport error fetching {url}: {e}", source_id) from e

    if response.status_code == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        raise RateLimitError(
            f"Rate limited by {url}. Retry after {retry_after}s",
            source_id,
            retry_after=retry_after,
        )

    if response.status_code in TRANSIENT_STATUSES:
        raise NetworkError(
            f"HTTP {response.status_code} for {url}",
            source_id,
            status_code=response.status_code,
        )

    if response.status_code >= 400:
        raise SourceHTTPError(
            f"HTTP {response.status_code} for {url}: {response.text[:200]}",
            source_id,
            status_code=response.status_code,
        )

    logger.debug(f"Fetched {url} ({response.status_code}, {len(response.content)} bytes)")
    return response


async def fetch_json(client: httpx.AsyncClient, url: str, source_id: str | None = None, **kwargs) -> Any:
    """GET a URL and decode its JSON body."""
    response = await fetch(client, url, source_id, **kwargs)
    try:
        return response.json()
    except ValueError as e:
        raise FormatChangeError(f"Response from {url} is not valid JSON: {e}", source_id) from e


async def fetch_text(client: httpx.AsyncClient, url: str, source_id: str | None = None, **kwargs) -> str:
    """GET a URL and return its decoded text body."""
    response = await fetch(client, url, source_id, **kwargs)
    return response.text
