"""Shared HTTP client manager for feed fetching.

Keeps one pooled httpx.AsyncClient per client id so repeated feed queries
reuse connections instead of creating a client per fetch. Redirects are never
followed automatically: the feed fetcher walks them itself so every hop can be
checked against the URL guard.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "CalendarAggregator/1.0"

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.5",
}

DEFAULT_REQUEST_TIMEOUT = 15.0

_DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()


def build_client(
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient configured for feed fetching.

    Args:
        timeout: Overall per-request timeout in seconds
        transport: Optional transport (tests pass an ``httpx.MockTransport``)

    Returns:
        Configured client; the caller owns it and must close it
    """
    return httpx.AsyncClient(
        transport=transport,
        limits=_DEFAULT_LIMITS,
        timeout=httpx.Timeout(timeout),
        follow_redirects=False,
        verify=True,
        headers=DEFAULT_HEADERS,
    )


async def get_shared_client(
    client_id: str = "default",
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        timeout: Per-request timeout used when the client is created

    Returns:
        Shared httpx.AsyncClient
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            client = build_client(timeout=timeout)
            _shared_clients[client_id] = client
            logger.debug("Created shared HTTP client '%s' (timeout=%.1fs)", client_id, timeout)
        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called on shutdown (and between tests) so no connections leak.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except Exception as e:  # noqa: PERF203
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
