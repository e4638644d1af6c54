"""Retrieval-augmented question answering over the ingested documents.

search -> prompt -> completion -> citation parsing, or search -> prompt ->
streamed deltas for ``answer_stream``.  The assembled prompt
is sent as the system message and the bare question as the user message.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

import structlog

from docingest.models.rag import RagAnswer, RagStream
from docingest.services.rag.prompt_builder import RagPromptBuilder, parse_citations

if TYPE_CHECKING:
    from docingest.interfaces.llm_provider import ILLMProvider
    from docingest.models.ingestion import DocumentChunk
    from docingest.services.retrieval.hybrid_search import HybridSearchService

logger = structlog.get_logger(logger_name=__name__)


class RagService:
    """Answers questions from hybrid-search results.

    Parameters
    ----------
    search_service:
        Source of grounding chunks.
    llm_provider:
        Completion service.
    prompt_builder:
        Prompt template engine; defaults to :class:`RagPromptBuilder`.
    """

    def __init__(
        self,
        search_service: HybridSearchService,
        llm_provider: ILLMProvider,
        prompt_builder: RagPromptBuilder | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> None:
        self._search = search_service
        self._llm = llm_provider
        self._prompt_builder = prompt_builder or RagPromptBuilder()
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def answer(self, question: str, limit: int = 5) -> RagAnswer:
        """Retrieve up to *limit* chunks and ask the model about them.

        With nothing retrieved the model still gets the prompt (with its
        no-chunks placeholder) and is expected to abstain.
        """
        chunks = await self._search.search(question, limit)
        prompt = self._prompt_builder.build(chunks, question)
        answer = await self._llm.complete(
            system_prompt=prompt,
            user_prompt=question,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        cited = [n for n in parse_citations(answer) if 1 <= n <= len(chunks)]
        logger.info(
            "rag_answer",
            provider=self._llm.get_provider_name(),
            chunks=len(chunks),
            cited=cited,
        )
        return RagAnswer(
            question=question,
            answer=answer.strip(),
            chunks=chunks,
            cited_chunk_numbers=cited,
            references=group_by_file_path(chunks),
        )

    async def answer_stream(self, question: str, limit: int = 5) -> RagStream:
        """Retrieve up to *limit* chunks and start a streamed answer.

        Retrieval happens here; the completion request is only sent when
        the caller starts iterating ``RagStream.answer``.
        """
        chunks = await self._search.search(question, limit)
        prompt = self._prompt_builder.build(chunks, question)
        logger.info(
            "rag_stream_started",
            provider=self._llm.get_provider_name(),
            chunks=len(chunks),
        )
        return RagStream(
            question=question,
            answer=self._llm.stream(
                system_prompt=prompt,
                user_prompt=question,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
            chunks=chunks,
            references=group_by_file_path(chunks),
        )


def group_by_file_path(chunks: list[DocumentChunk]) -> dict[str, list[DocumentChunk]]:
    """Group *chunks* by ``metadata.file_path``, preserving first-seen order."""
    grouped: dict[str, list[DocumentChunk]] = defaultdict(list)
    for chunk in chunks:
        grouped[chunk.metadata.file_path].append(chunk)
    return dict(grouped)
