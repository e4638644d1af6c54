"""Background ingestion jobs started from the progress websocket.

At most one batch runs per process.  Its outcome is reported through the
given notifier; the batch itself reports progress through the tracker.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from docingest.utils.errors import DocIngestError

if TYPE_CHECKING:
    from docingest.interfaces.progress_subscriber import IProgressSubscriber
    from docingest.models.ingestion import IngestionReport
    from docingest.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)


class IngestionJobRunner:
    """Runs one ingestion batch at a time as an asyncio task."""

    def __init__(self, ingestion_service: IngestionService, notifier: IProgressSubscriber) -> None:
        self._service = ingestion_service
        self._notifier = notifier
        self._task: asyncio.Task[IngestionReport | None] | None = None
        self._cancel: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, inputs: list[str], max_chunk_size: int) -> bool:
        """Start a batch; returns ``False`` if one is already running."""
        if self.running:
            return False
        self._cancel = asyncio.Event()
        self._task = asyncio.create_task(self._run(inputs, max_chunk_size, self._cancel))
        logger.info("ingestion_job_started", inputs=len(inputs))
        return True

    def cancel(self) -> bool:
        """Request cooperative cancellation; returns ``False`` if idle."""
        if not self.running or self._cancel is None:
            return False
        self._cancel.set()
        logger.info("ingestion_job_cancel_requested")
        return True

    async def wait(self) -> IngestionReport | None:
        """Await the current batch, if any."""
        if self._task is None:
            return None
        return await self._task

    async def _run(
        self, inputs: list[str], max_chunk_size: int, cancel: asyncio.Event
    ) -> IngestionReport | None:
        try:
            report = await self._service.ingest_documents(
                inputs, max_chunk_size=max_chunk_size, cancel=cancel
            )
        except DocIngestError as exc:
            logger.error("ingestion_job_failed", error=str(exc))
            await self._notifier.receive_message(f"Ingestion failed: {exc}")
            return None

        for failure in report.failures:
            await self._notifier.receive_message(
                f"Failed: {failure.identity_path}: {failure.error}"
            )
        return report
