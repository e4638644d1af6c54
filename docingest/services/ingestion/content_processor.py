"""Text-format content processor.

Turns a local file into ordered, embedded :class:`DocumentChunk` objects.
Each format handler yields *sections* (text plus structural metadata);
sections are chunked with :class:`TextChunker` and the resulting texts are
embedded in one batch.

Supported formats: plain text, Markdown (headings become section titles),
JSON (pretty-printed), HTML (visible text via BeautifulSoup) and CSV (one
section per data row, tagged with sheet name and row index).
"""

from __future__ import annotations

import asyncio
import csv
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from bs4 import BeautifulSoup

from docingest.interfaces.content_processor import IContentProcessor
from docingest.models.ingestion import DocumentChunk, IngestionMetadata
from docingest.services.ingestion.chunker import TextChunker
from docingest.utils.errors import ContentProcessingError, UnsupportedFileTypeError

if TYPE_CHECKING:
    from docingest.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_MARKDOWN_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
_BLANK_RUN_RE = re.compile(r"\n\s*\n+")
_HTML_NOISE_TAGS = ["script", "style", "noscript", "template"]


@dataclass(frozen=True)
class _Section:
    text: str
    section_title: str | None = None
    sheet_name: str | None = None
    row_index: int | None = None


class DocumentContentProcessor(IContentProcessor):
    """Chunks and embeds text-based documents.

    Parameters
    ----------
    embedding_provider:
        Used to embed every chunk.  ``None`` produces unembedded chunks,
        which only the keyword store will accept.
    chunker:
        Splitter shared across documents; a default one is created if
        omitted.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._chunker = chunker or TextChunker()
        self._handlers = {
            ".txt": self._read_plain,
            ".md": self._read_markdown,
            ".json": self._read_json,
            ".html": self._read_html,
            ".htm": self._read_html,
            ".csv": self._read_csv,
        }

    def supported_extensions(self) -> list[str]:
        return sorted(self._handlers)

    async def process(self, local_path: str, max_chunk_size: int) -> list[DocumentChunk]:
        path = Path(local_path)
        ext = path.suffix.lower()
        handler = self._handlers.get(ext)
        if handler is None:
            raise UnsupportedFileTypeError(message=f"Unsupported file type '{ext}' for {path.name}")

        try:
            sections = await asyncio.to_thread(handler, path)
        except (OSError, UnicodeDecodeError, ValueError, csv.Error) as exc:
            raise ContentProcessingError(message=f"Could not read {path.name}: {exc}") from exc

        base = IngestionMetadata(file_name=path.name, file_type=ext.lstrip("."), file_path=str(path))
        chunks: list[DocumentChunk] = []
        for section in sections:
            for text in self._chunker.split(section.text, max_chunk_size):
                chunks.append(
                    DocumentChunk(
                        content=text,
                        index=len(chunks),
                        metadata=base.model_copy(
                            update={
                                "section_title": section.section_title,
                                "sheet_name": section.sheet_name,
                                "row_index": section.row_index,
                            }
                        ),
                    )
                )

        if chunks and self._embedding_provider is not None:
            vectors = await self._embedding_provider.embed([c.content for c in chunks])
            if len(vectors) != len(chunks):
                raise ContentProcessingError(
                    message=f"Expected {len(chunks)} embeddings, got {len(vectors)}",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            chunks = [c.model_copy(update={"embedding": v}) for c, v in zip(chunks, vectors)]

        logger.info("document_processed", file_name=path.name, chunks=len(chunks), sections=len(sections))
        return chunks

    # ------------------------------------------------------------------
    # Format handlers (run in a worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _read_plain(path: Path) -> list[_Section]:
        return [_Section(text=path.read_text(encoding="utf-8", errors="replace"))]

    @staticmethod
    def _read_markdown(path: Path) -> list[_Section]:
        sections: list[_Section] = []
        title: str | None = None
        lines: list[str] = []

        def flush() -> None:
            body = "\n".join(lines).strip()
            if body:
                sections.append(_Section(text=body, section_title=title))

        for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
            match = _MARKDOWN_HEADING_RE.match(line)
            if match:
                flush()
                title, lines = match.group(1), [line]
            else:
                lines.append(line)
        flush()
        return sections

    @staticmethod
    def _read_json(path: Path) -> list[_Section]:
        data = json.loads(path.read_text(encoding="utf-8"))
        return [_Section(text=json.dumps(data, indent=2, ensure_ascii=False))]

    @staticmethod
    def _read_html(path: Path) -> list[_Section]:
        soup = BeautifulSoup(path.read_text(encoding="utf-8", errors="replace"), "html.parser")
        for tag in soup(_HTML_NOISE_TAGS):
            tag.decompose()
        title = soup.title.get_text(strip=True) if soup.title else None
        body = soup.body or soup
        text = _BLANK_RUN_RE.sub("\n\n", body.get_text("\n")).strip()
        return [_Section(text=text, section_title=title or None)]

    @staticmethod
    def _read_csv(path: Path) -> list[_Section]:
        with open(path, newline="", encoding="utf-8", errors="replace") as fh:
            rows = list(csv.reader(fh))
        if not rows:
            return []

        header, data = rows[0], rows[1:]
        sections: list[_Section] = []
        for row_index, row in enumerate(data):
            cells = [
                f"{header[i] if i < len(header) else f'column{i + 1}'}: {value}"
                for i, value in enumerate(row)
                if value.strip()
            ]
            if cells:
                sections.append(
                    _Section(text="; ".join(cells), sheet_name=path.stem, row_index=row_index)
                )
        return sections
