"""Abstract base class for real-time ingestion progress subscribers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docingest.models.ingestion import IngestionProgress


class IProgressSubscriber(ABC):
    """Push channel for progress notifications.

    Notifications are fire-and-forget.  The progress tracker logs and
    suppresses any exception a subscriber raises.
    """

    @abstractmethod
    async def receive_progress(self, progress: IngestionProgress) -> None:
        """Called after each document (and once at the start of a batch)."""

    @abstractmethod
    async def receive_completed(self, progress: IngestionProgress) -> None:
        """Called once per batch with ``completed == total``."""

    @abstractmethod
    async def receive_message(self, message: str) -> None:
        """Free-form status text."""
