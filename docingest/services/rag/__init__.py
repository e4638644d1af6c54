"""Retrieval-augmented generation: prompt assembly and answering."""

from docingest.services.rag.prompt_builder import (
    CITATION_PREFIX,
    NO_CHUNKS_PLACEHOLDER,
    UNKNOWN_ANSWER,
    RagPromptBuilder,
    parse_citations,
)
from docingest.services.rag.rag_service import RagService, group_by_file_path

__all__ = [
    "CITATION_PREFIX",
    "NO_CHUNKS_PLACEHOLDER",
    "UNKNOWN_ANSWER",
    "RagPromptBuilder",
    "RagService",
    "group_by_file_path",
    "parse_citations",
]
