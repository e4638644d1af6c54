"""Bounded fan-out for per-document work.

``throttled_gather`` runs a batch of awaitables like ``asyncio.gather`` with
``return_exceptions=True``: one failing document never cancels its siblings,
and each result slot holds either the value or the raised exception.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int = 0,
) -> list[_T | BaseException]:
    """Await *coros* concurrently, at most *limit* at a time.

    Parameters
    ----------
    coros:
        Awaitables to run.  Results keep their order.
    limit:
        Maximum number running at once; ``0`` or less means unbounded.
    """
    if limit <= 0:
        return await asyncio.gather(*coros, return_exceptions=True)

    gate = asyncio.Semaphore(limit)

    async def _gated(coro: Awaitable[_T]) -> _T:
        async with gate:
            return await coro

    return await asyncio.gather(*(_gated(c) for c in coros), return_exceptions=True)
