"""Progress subscribers that need no transport."""

from __future__ import annotations

import structlog

from docingest.interfaces.progress_subscriber import IProgressSubscriber
from docingest.models.ingestion import IngestionProgress

logger = structlog.get_logger(logger_name=__name__)


class LoggingProgressSubscriber(IProgressSubscriber):
    """Writes every notification to the structured log."""

    async def receive_progress(self, progress: IngestionProgress) -> None:
        logger.info(
            "ingestion_progress",
            file_path=progress.file_path,
            completed=progress.completed,
            total=progress.total,
        )

    async def receive_completed(self, progress: IngestionProgress) -> None:
        logger.info("ingestion_completed", completed=progress.completed, total=progress.total)

    async def receive_message(self, message: str) -> None:
        logger.info("ingestion_message", message=message)
