"""ChromaDB vector store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IDocumentStore`
with cosine distance.  Embeddings are always pre-computed: chunks arrive
embedded from the content processor and query text is embedded here with
the injected :class:`IEmbeddingProvider`.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Must be set before chromadb is imported; some versions read it at import.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from docingest.interfaces.document_store import IDocumentStore
from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.models.ingestion import DocumentChunk, IngestionMetadata, IngestionSource
from docingest.utils.errors import DocIngestError, StoreError

logger = structlog.get_logger(logger_name=__name__)

_OPTIONAL_METADATA_FIELDS = ("page_number", "section_title", "sheet_name", "row_index")


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model.

    Every write and query passes explicit embeddings, so this is never
    called.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docingest uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBVectorStore(IDocumentStore):
    """Vector-similarity store backed by ChromaDB with local persistence.

    Chunks without an embedding are skipped on upsert; the keyword store
    still receives them.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "semantic_docs",
        batch_size: int = 500,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._batch_size = batch_size
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection: Any = None

    # ------------------------------------------------------------------
    # IDocumentStore implementation
    # ------------------------------------------------------------------

    async def ensure_collection_exists(self) -> None:
        try:
            await asyncio.to_thread(self._get_collection)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB collection '{self._collection_name}' could not be created: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        await asyncio.to_thread(self._validate_embedding_dimensions)

    async def upsert(self, chunks: list[DocumentChunk]) -> int:
        """Upsert embedded chunks in batches; returns the number written."""
        embedded = [c for c in chunks if c.embedding]
        skipped = len(chunks) - len(embedded)
        if skipped:
            logger.debug("chromadb_skip_unembedded", skipped=skipped)
        if not embedded:
            return 0

        try:
            await asyncio.to_thread(self._sync_upsert, embedded)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert", count=len(embedded), skipped=skipped)
        return len(embedded)

    async def delete_collection(self) -> bool:
        try:
            deleted = await asyncio.to_thread(self._sync_delete_collection)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._collection = None
        if deleted:
            logger.info("chromadb_collection_deleted", collection=self._collection_name)
        return deleted

    async def delete_by_identity(self, identity_path: str) -> int:
        try:
            deleted = await asyncio.to_thread(self._sync_delete_by_identity, identity_path)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_by_identity failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_identity", file_path=identity_path, deleted_count=deleted)
        return deleted

    async def search(self, query: str, size: int) -> list[DocumentChunk]:
        """Embed *query* and return the *size* nearest chunks.

        ``retrieval_score`` is the cosine similarity ``1 - distance``
        clamped to ``[0, 1]``.
        """
        if size <= 0:
            return []
        try:
            count = await asyncio.to_thread(self._sync_count)
            if count == 0:
                return []
            query_embedding = await self._embedding_provider.embed_single(query)
            results = await asyncio.to_thread(
                self._sync_query, query_embedding, min(size, count)
            )
        except DocIngestError:
            raise
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        chunks = [
            self._metadata_to_chunk(meta or {}, text, max(0.0, min(1.0, 1.0 - distance)))
            for text, meta, distance in zip(documents, metadatas, distances, strict=True)
        ]
        logger.info(
            "chromadb_query",
            query_length=len(query),
            results_count=len(chunks),
            top_score=chunks[0].retrieval_score if chunks else 0.0,
        )
        return chunks

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Blocking ChromaDB calls, run via asyncio.to_thread
    # ------------------------------------------------------------------

    def _sync_count(self) -> int:
        return self._get_collection().count()

    def _sync_upsert(self, chunks: list[DocumentChunk]) -> None:
        collection = self._get_collection()
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            collection.upsert(
                ids=[c.storage_id for c in batch],
                embeddings=[c.embedding for c in batch],
                documents=[c.content for c in batch],
                metadatas=[self._chunk_to_metadata(c) for c in batch],
            )

    def _sync_delete_collection(self) -> bool:
        names = {c if isinstance(c, str) else c.name for c in self._client.list_collections()}
        if self._collection_name not in names:
            return False
        self._client.delete_collection(self._collection_name)
        return True

    def _sync_delete_by_identity(self, identity_path: str) -> int:
        collection = self._get_collection()
        ids = collection.get(where={"file_path": identity_path}, include=[])["ids"] or []
        if ids:
            collection.delete(ids=ids)
        return len(ids)

    def _sync_query(self, query_embedding: list[float], n_results: int) -> dict[str, Any]:
        return self._get_collection().query(
            query_embeddings=[query_embedding],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_collection(self) -> Any:
        if self._collection is None:
            try:
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                # Collection persisted with a different embedding function.
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
        return self._collection

    def _validate_embedding_dimensions(self) -> None:
        """Fail fast when stored vectors disagree with the embedding provider."""
        collection = self._get_collection()
        if collection.count() == 0:
            return
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        expected_dim = self._embedding_provider.get_dimension()
        if stored_dim != expected_dim:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=expected_dim,
                provider=self._embedding_provider.get_provider_name(),
            )
            raise StoreError(
                message=(
                    f"Embedding dimension mismatch: collection has {stored_dim}-dim vectors "
                    f"but '{self._embedding_provider.get_provider_name()}' produces "
                    f"{expected_dim}-dim vectors."
                ),
                provider_name=self.get_provider_name(),
            )

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        """Flatten chunk metadata; ChromaDB rejects ``None`` values."""
        meta = chunk.metadata
        result: dict[str, Any] = {
            "file_name": meta.file_name,
            "file_type": meta.file_type,
            "file_path": meta.file_path,
            "source": meta.source.value,
            "chunk_index": chunk.index,
        }
        for name in _OPTIONAL_METADATA_FIELDS:
            value = getattr(meta, name)
            if value is not None:
                result[name] = value
        return result

    @staticmethod
    def _metadata_to_chunk(meta: dict[str, Any], text: str, score: float) -> DocumentChunk:
        return DocumentChunk(
            content=text,
            index=int(meta.get("chunk_index", 0)),
            retrieval_score=score,
            metadata=IngestionMetadata(
                file_name=meta.get("file_name", ""),
                file_type=meta.get("file_type", ""),
                file_path=meta.get("file_path", ""),
                page_number=meta.get("page_number"),
                section_title=meta.get("section_title"),
                sheet_name=meta.get("sheet_name"),
                row_index=meta.get("row_index"),
                source=IngestionSource(meta.get("source", IngestionSource.LOCAL.value)),
            ),
        )
