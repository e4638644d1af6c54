"""Document ingestion: resolver registry, content processing and orchestration."""

from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.content_processor import DocumentContentProcessor
from docingest.services.ingestion.ingestion_service import IngestionService
from docingest.services.ingestion.source_registry import SourceResolverRegistry

__all__ = [
    "DocumentContentProcessor",
    "IngestionService",
    "SourceResolverRegistry",
    "TextChunker",
]
