"""
Connection pool shared by every ServiceClient.

All five media services are reached through one httpx.AsyncClient so that
keep-alive connections to a user's Radarr/Sonarr/Jellyfin hosts are reused
across capability calls. Tests bypass it by handing a ServiceClient its own
client built on httpx.MockTransport.
"""
import asyncio
from typing import Optional

import httpx
from mediahub.core.config import settings
from mediahub.core.logging_config import LogCategory, log_info

_client: Optional[httpx.AsyncClient] = None
_client_lock: Optional[asyncio.Lock] = None


def _pool_lock() -> asyncio.Lock:
    global _client_lock
    if _client_lock is None:
        _client_lock = asyncio.Lock()
    return _client_lock


def _needs_client() -> bool:
    return _client is None or _client.is_closed


async def get_http_client() -> httpx.AsyncClient:
    """
    Return the pooled client, opening a new one after close_http_client().

    ``HTTP_TIMEOUT_SECONDS`` bounds each physical request; retries add their
    own backoff on top of it.
    """
    global _client
    if _needs_client():
        async with _pool_lock():
            if _needs_client():
                _client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
                log_info(
                    "Service connection pool opened",
                    category=LogCategory.SERVICES,
                    timeout=settings.http_timeout_seconds,
                )
    return _client


async def close_http_client():
    """Drain the pool on shutdown; a no-op when nothing was opened."""
    global _client
    async with _pool_lock():
        if _client is not None and not _client.is_closed:
            await _client.aclose()
            log_info("Service connection pool closed", category=LogCategory.SERVICES)
        _client = None
