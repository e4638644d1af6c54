"""In-memory cache provider using cachetools.TLRUCache.

Suitable for single-process deployments.  Can be swapped for Redis or
another backend via the ICacheProvider interface.
"""

from __future__ import annotations

from typing import Any, NamedTuple

import structlog
from cachetools import TLRUCache

from docingest.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache honouring a per-item time-to-live.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds for entries set without one.
    timer:
        Clock used for expiry; tests inject a fake one.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 3600, timer: Any = None) -> None:
        self._default_ttl = ttl
        kwargs: dict[str, Any] = {"maxsize": max_size, "ttu": self._time_to_use}
        if timer is not None:
            kwargs["timer"] = timer
        self._cache: TLRUCache[str, _Entry] = TLRUCache(**kwargs)

    @staticmethod
    def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
        return now + entry.ttl

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*, expiring after *ttl* seconds."""
        effective_ttl = self._default_ttl if ttl is None else ttl
        self._cache[key] = _Entry(value, effective_ttl)
        logger.debug("cache_set", key=key, ttl=effective_ttl)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        return key in self._cache
