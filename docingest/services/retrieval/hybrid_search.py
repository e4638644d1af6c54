"""Hybrid retrieval: vector and keyword results merged into one list.

Both stores are queried concurrently.  The merge walks vector results
first, then keyword results, skipping any chunk whose dedup key
``(content, source, file_name, file_path, page_number)`` was already
taken, and stops as soon as ``limit`` chunks are collected.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from itertools import chain
from typing import TYPE_CHECKING, Union

import structlog

from docingest.models.ingestion import DocumentChunk

if TYPE_CHECKING:
    from docingest.interfaces.document_store import IDocumentStore

logger = structlog.get_logger(logger_name=__name__)

# (query, merged chunks) -> reordered / filtered chunks, sync or async.
Reranker = Callable[
    [str, list[DocumentChunk]],
    Union[list[DocumentChunk], Awaitable[list[DocumentChunk]]],
]


def merge_unique(streams: Iterable[Iterable[DocumentChunk]], limit: int) -> list[DocumentChunk]:
    """Concatenate *streams* in priority order, dropping duplicates, up to *limit*."""
    merged: list[DocumentChunk] = []
    if limit <= 0:
        return merged

    seen: set[tuple] = set()
    for chunk in chain.from_iterable(streams):
        key = chunk.dedup_key
        if key in seen:
            continue
        seen.add(key)
        merged.append(chunk)
        if len(merged) >= limit:
            break
    return merged


class HybridSearchService:
    """Concurrent vector + keyword search with priority merge.

    Parameters
    ----------
    vector_store:
        Queried first in priority.
    keyword_store:
        Fills the remaining capacity.
    reranker:
        Optional hook applied after merging; its output is deduplicated
        and truncated to ``limit`` again.
    """

    def __init__(
        self,
        vector_store: IDocumentStore,
        keyword_store: IDocumentStore,
        reranker: Reranker | None = None,
    ) -> None:
        self._vector_store = vector_store
        self._keyword_store = keyword_store
        self._reranker = reranker

    async def search(self, query: str, limit: int) -> list[DocumentChunk]:
        """Return at most *limit* unique chunks for *query*.

        Raises
        ------
        ValueError
            If *limit* is negative.
        docingest.utils.errors.StoreError
            If either store query fails.
        """
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        if limit == 0:
            return []

        vector_hits, keyword_hits = await asyncio.gather(
            self._vector_store.search(query, limit),
            self._keyword_store.search(query, limit),
        )
        merged = merge_unique((vector_hits, keyword_hits), limit)

        if self._reranker is not None:
            reranked = self._reranker(query, merged)
            if inspect.isawaitable(reranked):
                reranked = await reranked
            merged = merge_unique((reranked,), limit)

        logger.info(
            "hybrid_search",
            query_length=len(query),
            limit=limit,
            vector_hits=len(vector_hits),
            keyword_hits=len(keyword_hits),
            results=len(merged),
        )
        return merged
