"""Text chunking with overlapping windows and paragraph boundary preservation.

Chunk boundaries align with paragraph breaks (double newlines) where
possible, and consecutive chunks share a tail of context.  A paragraph
larger than the chunk size is split at sentence boundaries with an
abbreviation-aware splitter; a single sentence larger than the chunk size is
cut into fixed character windows.

Token counts are approximated as ``len(text) // 4``.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(logger_name=__name__)

_CHARS_PER_TOKEN = 4

# "Dr. Smith" should remain one sentence, not split at the period.
_ABBREVIATIONS = frozenset(
    {
        "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Ave", "Vol",
        "No", "vs", "etc", "approx", "dept", "est", "inc", "ltd", "co",
        "e.g", "i.e", "Fig", "Nr", "z.B", "bzw", "ca",
    }
)


def count_tokens(text: str) -> int:
    """Approximate token count for *text*."""
    return len(text) // _CHARS_PER_TOKEN


class TextChunker:
    """Splits text into overlapping chunks preserving paragraph boundaries.

    Parameters
    ----------
    overlap:
        Approximate number of tokens repeated at the start of the next
        chunk.  Clamped below the chunk size at split time.
    """

    def __init__(self, overlap: int = 50) -> None:
        self._overlap = max(0, overlap)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str, chunk_size: int) -> list[str]:
        """Split *text* into chunks of at most ~*chunk_size* tokens.

        Parameters
        ----------
        text:
            The full text to chunk.
        chunk_size:
            Target maximum token count per chunk.  Must be positive.

        Returns
        -------
        list[str]
            Chunk texts in document order.  Blank input returns ``[]``.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not text or not text.strip():
            return []

        overlap = min(self._overlap, chunk_size // 2)
        paragraphs = self._split_paragraphs(text)
        chunks = self._accumulate(paragraphs, chunk_size, overlap, joiner="\n\n")
        logger.debug("chunking_complete", num_chunks=len(chunks), chunk_size=chunk_size)
        return chunks

    # ------------------------------------------------------------------
    # Paragraph / sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        parts = re.split(r"\n\s*\n", text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split at ``.``, ``!`` or ``?`` followed by whitespace, skipping abbreviations."""
        # Mask abbreviation periods with a same-length placeholder so indices
        # stay aligned with the original text.
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

        sentences: list[str] = []
        last = 0
        for match in re.finditer(r"[.!?](?:\s|$)", masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)
        return sentences or [text]

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _accumulate(
        self,
        pieces: list[str],
        chunk_size: int,
        overlap: int,
        joiner: str,
    ) -> list[str]:
        """Greedily pack *pieces* into chunks, carrying an overlap tail forward."""
        chunks: list[str] = []
        current: list[tuple[str, int]] = []
        current_tokens = 0

        for piece in pieces:
            piece_tokens = count_tokens(piece)

            if piece_tokens > chunk_size:
                if current:
                    chunks.append(joiner.join(t for t, _ in current))
                    current, current_tokens = [], 0
                chunks.extend(self._split_oversized(piece, chunk_size, overlap, joiner))
                continue

            if current and current_tokens + piece_tokens > chunk_size:
                chunks.append(joiner.join(t for t, _ in current))
                current, current_tokens = self._overlap_tail(current, overlap)
                # The carried tail plus this piece may still not fit.
                if current_tokens + piece_tokens > chunk_size:
                    current, current_tokens = [], 0

            current.append((piece, piece_tokens))
            current_tokens += piece_tokens

        if current:
            chunks.append(joiner.join(t for t, _ in current))
        return chunks

    def _split_oversized(self, piece: str, chunk_size: int, overlap: int, joiner: str) -> list[str]:
        if joiner == "\n\n":
            sentences = self._split_sentences(piece)
            if len(sentences) > 1:
                return self._accumulate(sentences, chunk_size, overlap, joiner=" ")
        # A single run-on sentence: hard character windows.
        width = chunk_size * _CHARS_PER_TOKEN
        return [piece[i : i + width].strip() for i in range(0, len(piece), width) if piece[i : i + width].strip()]

    @staticmethod
    def _overlap_tail(parts: list[tuple[str, int]], overlap: int) -> tuple[list[tuple[str, int]], int]:
        """Return trailing *parts* whose combined tokens fit in *overlap*."""
        tail: list[tuple[str, int]] = []
        tokens = 0
        for text, tok_count in reversed(parts):
            if tokens + tok_count > overlap:
                break
            tail.insert(0, (text, tok_count))
            tokens += tok_count
        return tail, tokens
