"""Shared pytest fixtures and in-memory collaborators for the docingest test suite."""

from __future__ import annotations

import hashlib
import struct
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.interfaces.content_processor import IContentProcessor
from docingest.interfaces.document_store import IDocumentStore
from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.interfaces.llm_provider import ILLMProvider
from docingest.interfaces.progress_subscriber import IProgressSubscriber
from docingest.models.ingestion import (
    DocumentChunk,
    IngestionMetadata,
    IngestionProgress,
    IngestionSource,
)
from docingest.models.plan import PlanEntry, TransientLease
from docingest.pipeline.progress_tracker import ProgressTracker
from docingest.providers.cache.memory_cache import MemoryCacheProvider
from docingest.utils.errors import ContentProcessingError, StoreError

_EMBEDDING_DIM = 8


def _hash_to_vector(text: str) -> list[float]:
    """Deterministic unit-ish vector derived from a SHA-256 digest."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    values = struct.unpack(f"{_EMBEDDING_DIM}i", digest[: _EMBEDDING_DIM * 4])
    return [v / 2**31 for v in values]


def make_chunk(
    content: str,
    index: int = 0,
    file_name: str = "doc.txt",
    file_path: str = "/docs/doc.txt",
    source: IngestionSource = IngestionSource.LOCAL,
    page_number: str | None = None,
    section_title: str | None = None,
    embedding: list[float] | None = None,
    score: float | None = None,
) -> DocumentChunk:
    """Build a chunk with sensible defaults for tests."""
    return DocumentChunk(
        content=content,
        index=index,
        embedding=embedding,
        retrieval_score=score,
        metadata=IngestionMetadata(
            file_name=file_name,
            file_type=Path(file_name).suffix.lstrip("."),
            file_path=file_path,
            page_number=page_number,
            section_title=section_title,
            source=source,
        ),
    )


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.embed_calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls += 1
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed store keyed by ``(file_path, index)``.

    ``search`` returns ``search_results`` when preset, otherwise stored
    chunks whose content contains the query, in insertion order.
    """

    def __init__(
        self,
        name: str = "memory",
        search_results: list[DocumentChunk] | None = None,
        embedded_only: bool = False,
    ) -> None:
        self.name = name
        self.chunks: dict[tuple[str, int], DocumentChunk] = {}
        self.search_results = search_results
        self.embedded_only = embedded_only
        self.ensure_calls = 0
        self.search_calls: list[tuple[str, int]] = []
        self.deleted_identities: list[str] = []
        self.fail_upsert_for: set[str] = set()
        self.fail_delete_for: set[str] = set()
        self.collection_exists = False

    async def ensure_collection_exists(self) -> None:
        self.ensure_calls += 1
        self.collection_exists = True

    async def upsert(self, chunks: list[DocumentChunk]) -> int:
        written = 0
        for chunk in chunks:
            if chunk.metadata.file_path in self.fail_upsert_for:
                raise StoreError(message="upsert rejected", provider_name=self.name)
            if self.embedded_only and not chunk.embedding:
                continue
            self.chunks[(chunk.metadata.file_path, chunk.index)] = chunk
            written += 1
        return written

    async def delete_collection(self) -> bool:
        existed = self.collection_exists or bool(self.chunks)
        self.chunks.clear()
        self.collection_exists = False
        return existed

    async def delete_by_identity(self, identity_path: str) -> int:
        if identity_path in self.fail_delete_for:
            raise StoreError(message="delete rejected", provider_name=self.name)
        self.deleted_identities.append(identity_path)
        keys = [k for k in self.chunks if k[0] == identity_path]
        for key in keys:
            del self.chunks[key]
        return len(keys)

    async def search(self, query: str, size: int) -> list[DocumentChunk]:
        self.search_calls.append((query, size))
        if self.search_results is not None:
            return list(self.search_results[:size])
        hits = [c for c in self.chunks.values() if query.lower() in c.content.lower()]
        return hits[:size]

    def get_provider_name(self) -> str:
        return self.name

    def stored_for(self, identity_path: str) -> list[DocumentChunk]:
        return sorted(
            (c for (path, _), c in self.chunks.items() if path == identity_path),
            key=lambda c: c.index,
        )


class FakeContentProcessor(IContentProcessor):
    """Returns a preset number of embedded chunks per file name.

    ``plan`` maps a base file name to a chunk count, or to an exception
    instance that ``process`` raises for that file.
    """

    def __init__(self, plan: dict[str, int | Exception] | None = None) -> None:
        self.plan = plan or {}
        self.processed: list[str] = []

    def supported_extensions(self) -> list[str]:
        return [".docx", ".md", ".pdf", ".txt"]

    async def process(self, local_path: str, max_chunk_size: int) -> list[DocumentChunk]:
        self.processed.append(local_path)
        name = Path(local_path).name
        outcome = self.plan.get(name, 1)
        if isinstance(outcome, Exception):
            raise outcome
        return [
            DocumentChunk(
                content=f"{name} chunk {i}",
                index=i,
                embedding=_hash_to_vector(f"{name}:{i}"),
                metadata=IngestionMetadata(
                    file_name=name,
                    file_type=Path(name).suffix.lstrip("."),
                    file_path=local_path,
                ),
            )
            for i in range(outcome)
        ]


class FakeCloudResolver(ICloudResolver):
    """Resolves ``fake://{name}`` by writing a leased temp copy under *root*."""

    def __init__(
        self,
        root: Path,
        provenance: IngestionSource = IngestionSource.GOOGLE_DRIVE,
        prefix: str = "fake://",
    ) -> None:
        self._root = root
        self._provenance = provenance
        self._prefix = prefix
        self.leases: list[TransientLease] = []

    def can_resolve(self, source: str) -> bool:
        return source.startswith(self._prefix)

    async def resolve(self, source: str) -> PlanEntry:
        name = source[len(self._prefix):]
        download_dir = self._root / f"lease-{len(self.leases)}"
        download_dir.mkdir(parents=True)
        local_file = download_dir / name
        local_file.write_text(f"downloaded {name}", encoding="utf-8")
        lease = TransientLease(download_dir)
        self.leases.append(lease)
        return PlanEntry(
            local_path=str(local_file),
            identity_path=source,
            provenance=self._provenance,
            lease=lease,
        )

    def get_provider_name(self) -> str:
        return "fake"


class RecordingSubscriber(IProgressSubscriber):
    """Records every notification as ``(kind, payload)``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    async def receive_progress(self, progress: IngestionProgress) -> None:
        self.events.append(("progress", progress))

    async def receive_completed(self, progress: IngestionProgress) -> None:
        self.events.append(("completed", progress))

    async def receive_message(self, message: str) -> None:
        self.events.append(("message", message))

    def progress_pairs(self) -> list[tuple[str, int, int]]:
        return [
            (kind, payload.completed, payload.total)
            for kind, payload in self.events
            if kind in ("progress", "completed")
        ]

    def messages(self) -> list[str]:
        return [payload for kind, payload in self.events if kind == "message"]


def processing_error(message: str = "corrupt file") -> ContentProcessingError:
    return ContentProcessingError(message=message)


async def async_deltas(parts: list[str]) -> AsyncIterator[str]:
    """Async generator standing in for a streamed completion."""
    for part in parts:
        yield part


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider with a cited default answer.

    Override with ``mock_llm_provider.complete.return_value = "..."``.  ``stream``
    yields the same answer in three deltas.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="Invoices are kept for ten years.\nSources: [1]")
    mock.stream = MagicMock(
        side_effect=lambda **kwargs: async_deltas(["Invoices are kept ", "for ten years.", "\nSources: [1]"])
    )
    return mock


@pytest.fixture
def recording_subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def progress_tracker(recording_subscriber: RecordingSubscriber) -> ProgressTracker:
    """Tracker on a fresh memory cache with the recording subscriber attached."""
    tracker = ProgressTracker(MemoryCacheProvider(max_size=16, ttl=7200))
    tracker.register_subscriber(recording_subscriber)
    return tracker
