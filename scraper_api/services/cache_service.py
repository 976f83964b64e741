"""In-memory cache for scraping results.

Scrapes take several seconds each (browser navigation plus a fixed settle
delay), so repeated requests for the same search page or product are served
from a process-local map for one hour by default:
- Search pages keyed by ``search:<query>:<page>``
- Product details keyed by ``product:<productCode>``

Entries expire on read. Nothing else evicts them, and concurrent misses for
the same key both scrape.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from ..config import CacheConfig, config

logger = logging.getLogger(__name__)


class CacheEntry:
    """Cached payload with its creation timestamp."""

    __slots__ = ("data", "timestamp")

    def __init__(self, data: Any, timestamp: float):
        self.data = data
        self.timestamp = timestamp


class CacheService:
    """Time-bounded in-memory cache keyed by request signature."""

    def __init__(self, config: CacheConfig, clock: Callable[[], float] = time.time):
        """Initialize the cache.

        Args:
            config: TTL and enable switch.
            clock: Source of the current time in seconds.
        """
        self.config = config
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = {"hits": 0, "misses": 0}

    @staticmethod
    def search_key(query: str, page: int) -> str:
        """Build the cache key for a search results page."""
        return f"search:{query}:{page}"

    @staticmethod
    def product_key(product_code: str) -> str:
        """Build the cache key for a product details lookup."""
        return f"product:{product_code}"

    def get(self, key: str) -> Any | None:
        """Return the cached payload for a key while it is fresh.

        Args:
            key: Cache key.

        Returns:
            Stored payload, or None on a miss or after expiry.
        """
        if not self.config.enabled:
            return None

        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return None

        age = self._clock() - entry.timestamp
        if age >= self.config.ttl_seconds:
            del self._entries[key]
            self._stats["misses"] += 1
            logger.debug(f"Cache entry expired after {age:.0f}s: {key}")
            return None

        self._stats["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return entry.data

    def set(self, key: str, data: Any) -> bool:
        """Store a payload stamped with the current time.

        Args:
            key: Cache key.
            data: Payload to store.

        Returns:
            True if the payload was stored.
        """
        if not self.config.enabled:
            return False

        self._entries[key] = CacheEntry(data, self._clock())
        logger.debug(f"Cached: {key}")
        return True

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed.
        """
        removed = len(self._entries)
        self._entries.clear()
        logger.info(f"Cache cleared, {removed} entries removed")
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache usage statistics.

        Returns:
            Dictionary with entry count, hit/miss counters and TTL.
        """
        hits = self._stats["hits"]
        misses = self._stats["misses"]
        return {
            "enabled": self.config.enabled,
            "entries": len(self._entries),
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / (hits + misses) if (hits + misses) > 0 else 0,
            "ttl_seconds": self.config.ttl_seconds,
        }


# Global cache instance
_cache_service: CacheService | None = None


def get_cache_service(cache_config: CacheConfig | None = None) -> CacheService:
    """Get the process-wide cache, creating it on first use.

    Args:
        cache_config: Settings for a newly created cache, defaults to the
            global config. Ignored once the cache exists.

    Returns:
        Shared CacheService
    """
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService(cache_config or config.cache)
    return _cache_service


def shutdown_cache_service() -> None:
    """Drop the process-wide cache."""
    global _cache_service
    if _cache_service is not None:
        logger.info(f"Cache service closed. Final stats: {_cache_service.get_stats()}")
        _cache_service.clear()
        _cache_service = None
