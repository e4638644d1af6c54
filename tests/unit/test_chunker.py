"""Unit tests for the TextChunker, paragraph-aware overlapping text chunking."""

from __future__ import annotations

import pytest

from docingest.services.ingestion.chunker import TextChunker, count_tokens

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _paragraph(tag: str, sentences: int = 4) -> str:
    return " ".join(f"{tag} sentence number {i} has some filler words." for i in range(sentences))


_TEXT = "\n\n".join(_paragraph(f"P{i}") for i in range(8))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBasicChunking:
    def test_blank_text_yields_nothing(self) -> None:
        assert TextChunker().split("", 100) == []
        assert TextChunker().split("  \n\n  ", 100) == []

    def test_short_text_is_one_chunk(self) -> None:
        assert TextChunker().split("Just one line.", 100) == ["Just one line."]

    def test_multi_paragraph_text_splits(self) -> None:
        chunks = TextChunker(overlap=0).split(_TEXT, 100)
        assert len(chunks) > 1
        assert all(chunk.strip() for chunk in chunks)

    def test_chunk_count_decreases_with_larger_size(self) -> None:
        chunker = TextChunker(overlap=0)
        assert len(chunker.split(_TEXT, 60)) > len(chunker.split(_TEXT, 400))

    def test_non_positive_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            TextChunker().split("text", 0)

    def test_count_tokens_approximation(self) -> None:
        assert count_tokens("a" * 40) == 10


class TestParagraphPreservation:
    def test_paragraphs_not_split_when_they_fit(self) -> None:
        chunks = TextChunker(overlap=0).split(_TEXT, 100)
        paragraphs = _TEXT.split("\n\n")
        for chunk in chunks:
            for part in chunk.split("\n\n"):
                assert part in paragraphs

    def test_without_overlap_every_paragraph_appears_once(self) -> None:
        chunks = TextChunker(overlap=0).split(_TEXT, 100)
        joined = "\n\n".join(chunks)
        for paragraph in _TEXT.split("\n\n"):
            assert joined.count(paragraph) == 1


class TestOverlap:
    def test_consecutive_chunks_share_a_paragraph(self) -> None:
        paragraphs = [f"Para {i}. " + "word " * 30 for i in range(6)]
        text = "\n\n".join(p.strip() for p in paragraphs)
        chunks = TextChunker(overlap=40).split(text, 80)

        assert len(chunks) > 1
        for previous, current in zip(chunks, chunks[1:]):
            tail = previous.split("\n\n")[-1]
            assert current.startswith(tail)


class TestOversizedInput:
    def test_long_paragraph_split_at_sentences(self) -> None:
        paragraph = " ".join(f"Sentence {i} talks about Dr. Smith at length." for i in range(40))
        chunks = TextChunker(overlap=0).split(paragraph, 50)

        assert len(chunks) > 1
        for chunk in chunks:
            assert chunk.endswith(".")
            assert not chunk.endswith("Dr.")

    def test_run_on_sentence_cut_into_windows(self) -> None:
        run_on = "x" * 1000
        chunks = TextChunker(overlap=0).split(run_on, 50)

        assert "".join(chunks) == run_on
        assert all(len(chunk) <= 200 for chunk in chunks)
