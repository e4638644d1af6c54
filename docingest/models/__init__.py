"""docingest domain models -- re-exports all public model classes."""

from docingest.models.ingestion import (
    DocumentChunk,
    DocumentFailure,
    IngestedDocument,
    IngestionMetadata,
    IngestionProgress,
    IngestionReport,
    IngestionSource,
)
from docingest.models.plan import PlanEntry, TransientLease
from docingest.models.rag import RagAnswer, RagStream

__all__ = [
    "DocumentChunk",
    "DocumentFailure",
    "IngestedDocument",
    "IngestionMetadata",
    "IngestionProgress",
    "IngestionReport",
    "IngestionSource",
    "PlanEntry",
    "RagAnswer",
    "RagStream",
    "TransientLease",
]
