"""Key-value cache port.

The progress tracker keeps the single current-progress record here under a
fixed key.  An in-process TTL cache is the only adapter; a shared store
(Redis, SQLite) would let several processes read the same progress.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Async get/set/delete with per-entry expiry."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the live value for *key*, or ``None`` if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            Cache key.
        value:
            Any Python object; in-process adapters store it as-is.
        ttl:
            Seconds until expiry.  ``None`` falls back to the adapter's
            default lifetime.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop *key*; missing keys are ignored."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` while *key* holds an unexpired value."""
