"""Abstract base class for document content processors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docingest.models.ingestion import DocumentChunk


class IContentProcessor(ABC):
    """Turns a local file into an ordered list of chunks.

    The processor knows nothing about provenance or identity; the
    orchestrator stamps ``source`` and ``file_path`` afterwards.
    """

    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return lower-case extensions including the dot, e.g. ``[".txt", ".md"]``."""

    @abstractmethod
    async def process(self, local_path: str, max_chunk_size: int) -> list[DocumentChunk]:
        """Extract, chunk and (optionally) embed one file.

        Parameters
        ----------
        local_path:
            Readable path to the file.
        max_chunk_size:
            Upper bound on chunk size in approximate tokens.

        Returns
        -------
        list[DocumentChunk]
            Chunks with 0-based contiguous ``index`` values.

        Raises
        ------
        docingest.utils.errors.UnsupportedFileTypeError
            If the extension is not in :meth:`supported_extensions`.
        docingest.utils.errors.ContentProcessingError
            If the file cannot be read or parsed.
        """
