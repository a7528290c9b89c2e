"""In-memory cache provider using cachetools.TLRUCache.

Suitable for development and single-process deployments.  Can be swapped
for Redis or another backend via the ICacheProvider interface.
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from cachetools import TLRUCache

from ragdesk.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache with per-entry TTL, backed by ``cachetools.TLRUCache``.

    Each value is stored together with its own time-to-live, and the
    cache's ``ttu`` callback turns that into an expiry deadline, so
    ``set(..., ttl=300)`` is honoured even when the default differs.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds for entries stored without one.
    timer:
        Clock function; injectable so tests can advance time.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 3600, timer=time.monotonic) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, tuple[Any, int]] = TLRUCache(
            maxsize=max_size,
            ttu=lambda _key, entry, now: now + entry[1],
            timer=timer,
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry[0]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._cache[key] = (value, ttl if ttl is not None else self._default_ttl)
        logger.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache
