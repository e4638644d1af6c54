"""Models returned by the retrieval-augmented answer service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from docingest.models.ingestion import DocumentChunk


class RagAnswer(BaseModel):
    """A grounded answer plus the chunks it was generated from."""

    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    chunks: list[DocumentChunk] = Field(
        default_factory=list,
        description="Chunks in prompt order; chunk number n is chunks[n - 1].",
    )
    cited_chunk_numbers: list[int] = Field(
        default_factory=list,
        description="1-based chunk numbers parsed from the answer's citation line.",
    )
    references: dict[str, list[DocumentChunk]] = Field(
        default_factory=dict,
        description="Retrieved chunks grouped by file path.",
    )


@dataclass(frozen=True)
class RagStream:
    """A grounded answer that is still being generated.

    ``chunks`` and ``references`` are known before generation starts;
    iterate ``answer`` to receive the text as the model produces it.
    """

    question: str
    answer: AsyncIterator[str]
    chunks: list[DocumentChunk] = field(default_factory=list)
    references: dict[str, list[DocumentChunk]] = field(default_factory=dict)
