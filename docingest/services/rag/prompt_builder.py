"""Grounded prompt assembly for retrieval-augmented answers.

The output format is a contract with whoever reads the model's answer:

* each chunk is introduced by ``--- Document Chunk {n} ---`` (1-based, in
  input order) and a ``Source:`` line built from its metadata;
* an answer with no supporting evidence must be exactly
  :data:`UNKNOWN_ANSWER`;
* a supported answer ends with one line ``Sources: [1], [3]`` listing the
  chunk numbers used, which :func:`parse_citations` reads back.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from docingest.models.ingestion import DocumentChunk

UNKNOWN_ANSWER = (
    "The provided document chunks do not contain information relevant to the question."
)
NO_CHUNKS_PLACEHOLDER = "No document chunks available for analysis."
CITATION_PREFIX = "Sources:"

_CITATION_LINE_RE = re.compile(rf"^\s*{re.escape(CITATION_PREFIX)}\s*(.*)$", re.MULTILINE)
_CITATION_NUMBER_RE = re.compile(r"\[(\d+)\]")

RAG_PROMPT_TEMPLATE = """\
You are a document analysis assistant. Answer the question using only the document chunks below. Do not use outside knowledge and do not guess.

Rules:
1. Read every chunk before answering. Relevant information may be phrased differently from the question.
2. When several chunks are relevant, combine them into one complete answer. If they disagree, say so and describe each position.
3. If no chunk contains information relevant to the question, reply with exactly this sentence and nothing else:
{unknown_answer}
4. Answer in the language of the question.
5. Otherwise, end your answer with a single final line listing the numbers of the chunks you used, in this exact format:
{citation_prefix} [1], [3]

Document chunks:
{context}

Question: {question}
"""


def format_chunk_header(number: int, chunk: DocumentChunk) -> str:
    """Return the two header lines that introduce chunk *number*."""
    meta = chunk.metadata
    source = f"Source: {meta.file_name or 'Unknown'}"
    if meta.page_number:
        source += f" (Page {meta.page_number})"
    if meta.section_title:
        source += f" - {meta.section_title}"
    if meta.file_path:
        source += f" - FilePath: {meta.file_path}"
    return f"--- Document Chunk {number} ---\n{source}"


def parse_citations(answer: str) -> list[int]:
    """Return the chunk numbers on the last ``Sources:`` line of *answer*.

    Numbers keep their order of first appearance.  An answer without a
    citation line (including :data:`UNKNOWN_ANSWER`) yields ``[]``.
    """
    lines = _CITATION_LINE_RE.findall(answer)
    if not lines:
        return []
    numbers = (int(n) for n in _CITATION_NUMBER_RE.findall(lines[-1]))
    return list(dict.fromkeys(numbers))


class RagPromptBuilder:
    """Deterministic template engine for grounded prompts."""

    def __init__(self, template: str = RAG_PROMPT_TEMPLATE) -> None:
        self._template = template

    def build(self, chunks: Sequence[DocumentChunk], question: str) -> str:
        """Render *chunks* and *question* into the full prompt.

        Chunks are numbered by input position.  A chunk with blank content
        is skipped but keeps its number, so numbers always map back to
        ``chunks[n - 1]``.
        """
        blocks = [
            f"{format_chunk_header(number, chunk)}\n{chunk.content.strip()}"
            for number, chunk in enumerate(chunks, start=1)
            if chunk.content and chunk.content.strip()
        ]
        return self._render(blocks, question)

    def build_from_texts(self, texts: Sequence[str], question: str) -> str:
        """Variant of :meth:`build` for raw strings without metadata."""
        blocks = [
            f"--- Document Chunk {number} ---\nSource: Unknown\n{text.strip()}"
            for number, text in enumerate(texts, start=1)
            if text and text.strip()
        ]
        return self._render(blocks, question)

    def _render(self, blocks: list[str], question: str) -> str:
        context = "\n\n".join(blocks) if blocks else NO_CHUNKS_PLACEHOLDER
        return self._template.format(
            unknown_answer=UNKNOWN_ANSWER,
            citation_prefix=CITATION_PREFIX,
            context=context,
            question=question.strip(),
        )
