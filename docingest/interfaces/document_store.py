"""Abstract base class for the two chunk backing stores.

The same contract is implemented once by a vector-similarity store and
once by a keyword-relevance store.  Both treat ``(file_path, index)`` as the
deterministic write key so repeated upserts overwrite rather than append.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docingest.models.ingestion import DocumentChunk, IngestedDocument


# Concrete implementations:
#   ChromaDBVectorStore  -- cosine similarity over pre-computed embeddings
#   SQLiteKeywordStore   -- SQLite FTS5 ranked by bm25()
# Located in: docingest/providers/
class IDocumentStore(ABC):
    """Contract for a chunk store used by ingestion and hybrid retrieval.

    Failures are raised as :class:`~docingest.utils.errors.StoreError` with
    ``provider_name`` set to :meth:`get_provider_name`.
    """

    @abstractmethod
    async def ensure_collection_exists(self) -> None:
        """Create the collection / index if it does not exist yet (idempotent)."""

    @abstractmethod
    async def upsert(self, chunks: list[DocumentChunk]) -> int:
        """Insert or overwrite *chunks* keyed by ``(file_path, index)``.

        Parameters
        ----------
        chunks:
            Stamped chunks, usually all belonging to one document.

        Returns
        -------
        int
            Number of chunks actually written.  A vector store skips chunks
            without an embedding, so this can be less than ``len(chunks)``.
        """

    @abstractmethod
    async def delete_collection(self) -> bool:
        """Drop the whole collection / index.

        Returns
        -------
        bool
            ``True`` if something was deleted, ``False`` if it did not exist.
        """

    @abstractmethod
    async def delete_by_identity(self, identity_path: str) -> int:
        """Delete every chunk whose ``file_path`` equals *identity_path*.

        Returns
        -------
        int
            Number of chunks removed (0 when none matched).
        """

    @abstractmethod
    async def search(self, query: str, size: int) -> list[DocumentChunk]:
        """Return up to *size* chunks relevant to *query*, best first.

        Returned chunks carry ``retrieval_score``.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short store name used in logs and errors."""


class IDocumentRepository(ABC):
    """Lists the documents currently held by a store."""

    @abstractmethod
    async def list_documents(self) -> list[IngestedDocument]:
        """Return one entry per ingested identity path."""
