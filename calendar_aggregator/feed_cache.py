"""Time- and capacity-bounded read-through cache of raw feed text.

Entries are keyed by feed source identity. A cached body is served only while
it is younger than the freshness window; otherwise the fetcher is called and
the result stored. When the cache is full the oldest inserted entry is evicted
(FIFO, not LRU). Fetch failures are logged and reported as an empty body; they
are never cached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from .feed_fetcher import FeedFetchError, FeedSecurityError

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 300.0
DEFAULT_CAPACITY = 20


class Fetcher(Protocol):
    """Anything that can fetch feed text for a URL."""

    async def fetch(self, url: str) -> str: ...


@dataclass
class CachedFeedBody:
    """Raw feed text with the time it was fetched."""

    url: str
    text: str
    fetched_at: float


class FeedCache:
    """Read-through cache in front of a feed fetcher.

    Example:
        cache = FeedCache(FeedFetcher())
        text = await cache.get_or_fetch(source.id, source.url)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        capacity: int = DEFAULT_CAPACITY,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize feed cache.

        Args:
            fetcher: Fetcher used on cache misses
            capacity: Maximum number of cached bodies
            freshness_seconds: Maximum age at which a body is still served
            clock: Monotonic clock in seconds (defaults to time.monotonic)
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.fetcher = fetcher
        self.capacity = capacity
        self.freshness_seconds = freshness_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CachedFeedBody] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "failures": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _is_fresh(self, entry: CachedFeedBody) -> bool:
        return (self._clock() - entry.fetched_at) < self.freshness_seconds

    def get(self, key: str, url: Optional[str] = None) -> Optional[str]:
        """Return the cached body for ``key`` if present and fresh.

        Args:
            key: Feed source identity
            url: When given, the entry must have been fetched from this URL

        Returns:
            Cached text, or None when missing, stale or fetched from another URL
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if url is not None and entry.url != url:
            logger.debug("Cache entry for %s was fetched from a different URL", key)
            return None
        if not self._is_fresh(entry):
            logger.debug("Cache entry for %s is stale", key)
            return None
        return entry.text

    def _drop_lock(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def put(self, key: str, url: str, text: str) -> None:
        """Store a body, evicting the oldest entry first when at capacity."""
        if key in self._entries:
            # Re-insert so the refreshed entry becomes the newest
            del self._entries[key]
        elif len(self._entries) >= self.capacity:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            self._drop_lock(oldest_key)
            self.stats["evictions"] += 1
            logger.debug(
                "Evicted oldest feed cache entry: %s (cache size: %d/%d)",
                oldest_key,
                len(self._entries),
                self.capacity,
            )

        self._entries[key] = CachedFeedBody(url=url, text=text, fetched_at=self._clock())

    async def get_or_fetch(self, key: str, url: str) -> str:
        """Return fresh cached text for ``key`` or fetch it from ``url``.

        Concurrent calls for the same key are serialized, so a cold entry is
        fetched once and later callers are served from the cache.

        Args:
            key: Feed source identity
            url: Feed URL

        Returns:
            Feed text, or "" when the fetch failed
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self.get(key, url)
            if cached is not None:
                self.stats["hits"] += 1
                logger.debug("Feed cache hit for %s", key)
                return cached

            self.stats["misses"] += 1
            try:
                text = await self.fetcher.fetch(url)
            except FeedSecurityError as e:
                self.stats["failures"] += 1
                logger.warning("Feed %s blocked by security policy: %s", key, e)
                return ""
            except FeedFetchError as e:
                self.stats["failures"] += 1
                logger.warning("Failed to fetch feed %s from %s: %s", key, url, e)
                return ""

            self.put(key, url, text)
            return text

    def clear(self) -> None:
        """Drop all cached bodies and the locks no fetch is holding."""
        self._entries.clear()
        for key in list(self._locks):
            self._drop_lock(key)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            **self.stats,
            "current_size": len(self._entries),
            "capacity": self.capacity,
            "freshness_seconds": self.freshness_seconds,
        }
