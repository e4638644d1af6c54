"""Ingestion progress tracking and built-in subscribers."""

from docingest.pipeline.progress_tracker import PROGRESS_CACHE_KEY, ProgressTracker
from docingest.pipeline.subscribers import LoggingProgressSubscriber

__all__ = ["PROGRESS_CACHE_KEY", "LoggingProgressSubscriber", "ProgressTracker"]
