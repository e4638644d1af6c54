"""Ingestion progress tracking with subscriber notification.

Holds exactly one record, the latest :class:`IngestionProgress`, in the
cache under :data:`PROGRESS_CACHE_KEY` with a fixed time-to-live.  The
orchestrator calls the tracker directly after every event; the tracker
overwrites the cached record and then awaits every subscriber in
registration order.

    Orchestrator --report_progress()--> ProgressTracker --cache.set()
                                                        --receive_progress()--> subscribers

A subscriber that raises is logged and skipped.  Delivery failures never
abort ingestion.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from docingest.models.ingestion import IngestionProgress
from docingest.utils.logging import get_logger

if TYPE_CHECKING:
    from docingest.interfaces.cache_provider import ICacheProvider
    from docingest.interfaces.progress_subscriber import IProgressSubscriber

PROGRESS_CACHE_KEY = "ingestion-progress"
DEFAULT_PROGRESS_TTL = 2 * 60 * 60


class ProgressTracker:
    """Caches the latest ingestion progress and fans it out to subscribers.

    Parameters
    ----------
    cache:
        Backing cache for the single progress record.
    ttl:
        Seconds the record survives without a new event.
    """

    def __init__(self, cache: ICacheProvider, ttl: int = DEFAULT_PROGRESS_TTL) -> None:
        self._cache = cache
        self._ttl = ttl
        self._subscribers: list[IProgressSubscriber] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def report_progress(self, progress: IngestionProgress) -> None:
        """Record an intermediate progress event and notify subscribers."""
        await self._store(progress)
        self._logger.debug(
            "progress_update",
            file_path=progress.file_path,
            completed=progress.completed,
            total=progress.total,
        )
        for subscriber in list(self._subscribers):
            await self._deliver(subscriber, "receive_progress", progress)

    async def report_completed(self, progress: IngestionProgress) -> None:
        """Record the terminal event of a batch and notify subscribers."""
        await self._store(progress)
        self._logger.info(
            "progress_completed",
            completed=progress.completed,
            total=progress.total,
        )
        for subscriber in list(self._subscribers):
            await self._deliver(subscriber, "receive_completed", progress)

    async def send_message(self, message: str) -> None:
        """Push free-form status text to subscribers (not cached)."""
        for subscriber in list(self._subscribers):
            await self._deliver(subscriber, "receive_message", message)

    async def get_progress(self) -> IngestionProgress:
        """Return the cached record, or a zeroed one if absent or expired."""
        cached = await self._cache.get(PROGRESS_CACHE_KEY)
        if cached is None:
            return IngestionProgress()
        return cached

    async def reset(self) -> None:
        """Forget the cached record; the next read returns a zeroed one."""
        await self._cache.delete(PROGRESS_CACHE_KEY)
        self._logger.debug("progress_reset")

    def register_subscriber(self, subscriber: IProgressSubscriber) -> None:
        """Register *subscriber* (idempotent)."""
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
            self._logger.debug(
                "subscriber_registered",
                subscriber=type(subscriber).__name__,
                total_subscribers=len(self._subscribers),
            )

    def unregister_subscriber(self, subscriber: IProgressSubscriber) -> None:
        """Remove a previously registered subscriber (no-op if unknown)."""
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
            self._logger.debug(
                "subscriber_unregistered",
                subscriber=type(subscriber).__name__,
                remaining_subscribers=len(self._subscribers),
            )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _store(self, progress: IngestionProgress) -> None:
        await self._cache.set(PROGRESS_CACHE_KEY, progress, ttl=self._ttl)

    async def _deliver(self, subscriber: IProgressSubscriber, method: str, payload: object) -> None:
        try:
            await getattr(subscriber, method)(payload)
        except Exception as exc:
            self._logger.warning(
                "subscriber_delivery_failed",
                subscriber=type(subscriber).__name__,
                method=method,
                error=str(exc),
            )
