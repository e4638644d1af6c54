"""Utility modules for docingest.

- **errors** -- exception hierarchy rooted at DocIngestError.
- **concurrency** -- ``throttled_gather`` for optionally bounded fan-out.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
"""

from docingest.utils.concurrency import throttled_gather
from docingest.utils.errors import (
    ConfigurationError,
    ContentProcessingError,
    DocIngestError,
    EmbeddingError,
    LLMError,
    NoResolverError,
    ResolverError,
    SourceNotFoundError,
    StoreError,
    UnsupportedFileTypeError,
)
from docingest.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "ContentProcessingError",
    "DocIngestError",
    "EmbeddingError",
    "LLMError",
    "NoResolverError",
    "ResolverError",
    "SourceNotFoundError",
    "StoreError",
    "UnsupportedFileTypeError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
