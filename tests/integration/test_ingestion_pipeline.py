"""Integration tests for the document ingestion pipeline.

Drives :class:`IngestionService` end to end with in-memory stores, a fake
content processor and the real resolver registry, progress tracker and
memory cache.  The last group swaps in the real ChromaDB and SQLite FTS5
stores under ``tmp_path``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from docingest.models.ingestion import IngestionProgress, IngestionSource
from docingest.pipeline.progress_tracker import ProgressTracker
from docingest.providers.keyword_store.sqlite_fts_provider import SQLiteKeywordStore
from docingest.providers.vector_store.chromadb_provider import ChromaDBVectorStore
from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.content_processor import DocumentContentProcessor
from docingest.services.ingestion.ingestion_service import IngestionService
from docingest.services.ingestion.source_registry import SourceResolverRegistry
from docingest.services.retrieval.hybrid_search import HybridSearchService
from docingest.utils.errors import NoResolverError, SourceNotFoundError
from tests.conftest import (
    FakeCloudResolver,
    FakeContentProcessor,
    InMemoryDocumentStore,
    MockEmbeddingProvider,
    RecordingSubscriber,
    processing_error,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


class _Pipeline:
    """Bundle of the service and its observable collaborators."""

    def __init__(
        self,
        tmp_path: Path,
        tracker: ProgressTracker,
        plan: dict | None = None,
        max_concurrency: int = 0,
    ) -> None:
        self.vector = InMemoryDocumentStore("vector", embedded_only=True)
        self.keyword = InMemoryDocumentStore("keyword")
        self.processor = FakeContentProcessor(plan)
        self.resolver = FakeCloudResolver(tmp_path / "downloads")
        self.service = IngestionService(
            registry=SourceResolverRegistry([self.resolver]),
            processor=self.processor,
            vector_store=self.vector,
            keyword_store=self.keyword,
            progress_tracker=tracker,
            max_concurrency=max_concurrency,
        )


def _local(tmp_path: Path, name: str) -> str:
    path = tmp_path / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"contents of {name}")
    return str(path)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestLocalBatch:
    """Two local files ingested in one call."""

    @pytest.mark.asyncio
    async def test_progress_sequence_and_chunks(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"A.pdf": 3, "B.docx": 2})
        a = _local(tmp_path, "A.pdf")
        b = _local(tmp_path, "B.docx")

        report = await pipeline.service.ingest_documents([a, b], max_chunk_size=200)

        assert recording_subscriber.progress_pairs() == [
            ("progress", 0, 2),
            ("progress", 1, 2),
            ("progress", 2, 2),
            ("completed", 2, 2),
        ]
        progress_paths = [
            payload.file_path for kind, payload in recording_subscriber.events if kind == "progress"
        ]
        assert progress_paths == ["", a, b]

        assert report.total == 2
        assert report.completed == 2
        assert report.chunks_written == 5
        assert report.failures == []

        for store in (pipeline.vector, pipeline.keyword):
            assert len(store.chunks) == 5
            assert store.ensure_calls == 1
            assert store.deleted_identities == [a, b]
            for chunk in store.chunks.values():
                assert chunk.metadata.source is IngestionSource.LOCAL
            assert [c.index for c in store.stored_for(a)] == [0, 1, 2]
            assert [c.index for c in store.stored_for(b)] == [0, 1]

        assert await pipeline.service.get_progress() == IngestionProgress(completed=2, total=2)

    @pytest.mark.asyncio
    async def test_messages_bracket_the_batch(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        await pipeline.service.ingest_documents([_local(tmp_path, "a.txt")])

        messages = [p for kind, p in recording_subscriber.events if kind == "message"]
        assert messages == ["Ingestion started: 1 document(s)", "Ingestion finished: 1 succeeded, 0 failed"]

    @pytest.mark.asyncio
    async def test_reingest_is_idempotent(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"A.pdf": 3})
        a = _local(tmp_path, "A.pdf")

        await pipeline.service.ingest_documents([a])
        first = dict(pipeline.keyword.chunks)
        await pipeline.service.ingest_documents([a])

        assert pipeline.keyword.chunks == first
        assert len(pipeline.vector.chunks) == 3

    @pytest.mark.asyncio
    async def test_shrunk_document_loses_old_tail(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"A.pdf": 5})
        a = _local(tmp_path, "A.pdf")
        await pipeline.service.ingest_documents([a])

        pipeline.processor.plan["A.pdf"] = 2
        await pipeline.service.ingest_documents([a])

        assert [c.index for c in pipeline.keyword.stored_for(a)] == [0, 1]

    @pytest.mark.asyncio
    async def test_empty_input_list(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)

        report = await pipeline.service.ingest_documents([])

        assert report.total == 0
        assert recording_subscriber.progress_pairs() == [("progress", 0, 0), ("completed", 0, 0)]

    @pytest.mark.asyncio
    async def test_bounded_concurrency_processes_everything(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, max_concurrency=2)
        inputs = [_local(tmp_path, f"doc{i}.txt") for i in range(5)]

        report = await pipeline.service.ingest_documents(inputs)

        assert report.completed == 5
        assert sorted(pipeline.processor.processed) == sorted(inputs)


class TestCloudInputs:
    """Inputs resolved through a cloud resolver carry provenance and leases."""

    @pytest.mark.asyncio
    async def test_cloud_chunks_stamped_and_leases_released(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"report.md": 2})
        local = _local(tmp_path, "A.pdf")

        await pipeline.service.ingest_documents([local, "fake://report.md"])

        cloud_chunks = pipeline.keyword.stored_for("fake://report.md")
        assert len(cloud_chunks) == 2
        for chunk in cloud_chunks:
            assert chunk.metadata.file_path == "fake://report.md"
            assert chunk.metadata.source is IngestionSource.GOOGLE_DRIVE
            assert chunk.metadata.file_name == "report.md"

        (lease,) = pipeline.resolver.leases
        assert lease.released is True
        assert not lease.path.exists()

    @pytest.mark.asyncio
    async def test_lease_released_when_processing_fails(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"bad.md": processing_error()})

        report = await pipeline.service.ingest_documents(["fake://bad.md"])

        assert [f.identity_path for f in report.failures] == ["fake://bad.md"]
        assert pipeline.resolver.leases[0].released is True

    @pytest.mark.asyncio
    async def test_unresolvable_input_aborts_and_releases_earlier_leases(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)

        with pytest.raises(NoResolverError, match="ftp://nowhere/x.txt"):
            await pipeline.service.ingest_documents(["fake://first.md", "ftp://nowhere/x.txt"])

        assert pipeline.resolver.leases[0].released is True
        assert pipeline.processor.processed == []
        assert pipeline.keyword.chunks == {}
        assert recording_subscriber.events == []

    @pytest.mark.asyncio
    async def test_failing_release_does_not_skip_other_leases(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        resolve = pipeline.resolver.resolve

        async def resolve_with_broken_first_lease(source: str):
            entry = await resolve(source)
            if len(pipeline.resolver.leases) == 1:

                def broken_release() -> None:
                    raise RuntimeError("handle still open")

                entry.lease.release = broken_release
            return entry

        pipeline.resolver.resolve = resolve_with_broken_first_lease

        report = await pipeline.service.ingest_documents(["fake://a.md", "fake://b.md"])

        assert report.completed == 2
        assert report.failures == []
        assert pipeline.resolver.leases[1].released is True
        assert not pipeline.resolver.leases[1].path.exists()


class TestFailureIsolation:
    """A failing document is reported and the rest of the batch continues."""

    @pytest.mark.asyncio
    async def test_processing_failure_isolated(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"bad.txt": processing_error("corrupt file")})
        good = _local(tmp_path, "good.txt")
        bad = _local(tmp_path, "bad.txt")

        report = await pipeline.service.ingest_documents([bad, good])

        assert report.completed == 2
        assert report.succeeded == 1
        assert len(report.failures) == 1
        assert report.failures[0].identity_path == bad
        assert "corrupt file" in report.failures[0].error
        assert pipeline.keyword.stored_for(good)
        assert pipeline.keyword.stored_for(bad) == []
        assert recording_subscriber.progress_pairs()[-1] == ("completed", 2, 2)

    @pytest.mark.asyncio
    async def test_persist_failure_isolated(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        good = _local(tmp_path, "good.txt")
        bad = _local(tmp_path, "bad.txt")
        pipeline.vector.fail_upsert_for.add(bad)

        report = await pipeline.service.ingest_documents([bad, good])

        assert [f.identity_path for f in report.failures] == [bad]
        assert "[vector] upsert rejected" in report.failures[0].error
        assert pipeline.keyword.stored_for(good)

    @pytest.mark.asyncio
    async def test_pre_delete_failure_skips_only_that_document(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        good = _local(tmp_path, "good.txt")
        bad = _local(tmp_path, "bad.txt")
        pipeline.keyword.fail_delete_for.add(bad)

        report = await pipeline.service.ingest_documents([bad, good])

        assert [f.identity_path for f in report.failures] == [bad]
        assert bad not in pipeline.processor.processed
        assert good in pipeline.processor.processed


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_start_resolves_nothing(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        cancel = asyncio.Event()
        cancel.set()

        report = await pipeline.service.ingest_documents(
            [_local(tmp_path, "a.txt"), "fake://b.md"], cancel=cancel
        )

        assert report.total == 0
        assert report.cancelled is True
        assert pipeline.resolver.leases == []
        assert pipeline.processor.processed == []

    @pytest.mark.asyncio
    async def test_cancel_during_persist_stops_after_current_document(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        cancel = asyncio.Event()
        first = _local(tmp_path, "first.txt")
        second = _local(tmp_path, "second.txt")

        original_upsert = pipeline.keyword.upsert

        async def upsert_then_cancel(chunks):
            written = await original_upsert(chunks)
            cancel.set()
            return written

        pipeline.keyword.upsert = upsert_then_cancel

        report = await pipeline.service.ingest_documents([first, second, "fake://c.md"], cancel=cancel)

        assert report.cancelled is True
        assert report.total == 3
        assert report.completed == 1
        assert pipeline.keyword.stored_for(first)
        assert pipeline.keyword.stored_for(second) == []
        assert recording_subscriber.progress_pairs()[-1] == ("completed", 1, 1)
        assert all(lease.released for lease in pipeline.resolver.leases)

    @pytest.mark.asyncio
    async def test_pre_delete_failure_of_unreached_document_not_reported(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        cancel = asyncio.Event()
        first = _local(tmp_path, "a.txt")
        second = _local(tmp_path, "b.txt")
        original_delete = pipeline.keyword.delete_by_identity

        async def cancel_then_fail(identity_path: str) -> int:
            if identity_path == second:
                cancel.set()
                raise RuntimeError("index locked")
            return await original_delete(identity_path)

        pipeline.keyword.delete_by_identity = cancel_then_fail

        report = await pipeline.service.ingest_documents([first, second], cancel=cancel)

        assert report.cancelled is True
        assert report.completed == 0
        assert report.failures == []
        assert report.succeeded == 0
        assert pipeline.processor.processed == []
        assert recording_subscriber.progress_pairs()[-1] == ("completed", 0, 0)
        assert "Ingestion finished: 0 succeeded, 0 failed" in recording_subscriber.messages()


class TestChunkSizeValidation:
    """A bad chunk size is rejected before either store is touched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [0, -20])
    async def test_reingest_with_bad_size_keeps_existing_chunks(
        self,
        tmp_path: Path,
        progress_tracker: ProgressTracker,
        recording_subscriber: RecordingSubscriber,
        size: int,
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"a.md": 2})
        doc = _local(tmp_path, "a.md")
        await pipeline.service.ingest_documents([doc], max_chunk_size=500)
        ensure_calls = pipeline.keyword.ensure_calls
        events = len(recording_subscriber.events)

        with pytest.raises(ValueError, match="max_chunk_size must be positive"):
            await pipeline.service.ingest_documents([doc], max_chunk_size=size)

        assert len(pipeline.keyword.stored_for(doc)) == 2
        assert len(pipeline.vector.stored_for(doc)) == 2
        assert pipeline.keyword.deleted_identities == [doc]
        assert pipeline.keyword.ensure_calls == ensure_calls
        assert len(recording_subscriber.events) == events

    @pytest.mark.asyncio
    async def test_folder_with_bad_size_rejected(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        _local(tmp_path / "docs", "a.txt")

        with pytest.raises(ValueError, match="got 0"):
            await pipeline.service.ingest_folder(str(tmp_path / "docs"), max_chunk_size=0)

        assert pipeline.processor.processed == []
        assert pipeline.keyword.ensure_calls == 0


class TestFolderAndFlush:
    @pytest.mark.asyncio
    async def test_missing_folder_raises(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        with pytest.raises(SourceNotFoundError):
            await pipeline.service.ingest_folder(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_folder_filters_extensions_recursively(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        root = tmp_path / "docs"
        keep = [_local(root, "a.txt"), _local(root, "nested/b.PDF"), _local(root, "nested/deeper/c.md")]
        _local(root, "image.png")
        _local(root, "nested/archive.zip")

        report = await pipeline.service.ingest_folder(str(root))

        assert report.total == 3
        assert sorted(pipeline.processor.processed) == sorted(keep)

    @pytest.mark.asyncio
    async def test_flush_clears_stores_and_progress(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker, {"A.pdf": 3})
        await pipeline.service.ingest_documents([_local(tmp_path, "A.pdf")])

        assert await pipeline.service.flush() is True

        assert pipeline.vector.chunks == {}
        assert pipeline.keyword.chunks == {}
        assert await pipeline.service.get_progress() == IngestionProgress()

    @pytest.mark.asyncio
    async def test_list_documents_without_repository(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        pipeline = _Pipeline(tmp_path, progress_tracker)
        assert await pipeline.service.list_ingested_documents() == []


class TestRealStoresEndToEnd:
    """Real processor, ChromaDB and SQLite FTS5; hybrid search over the result."""

    @pytest.mark.asyncio
    async def test_ingest_then_hybrid_search(
        self, tmp_path: Path, progress_tracker: ProgressTracker
    ) -> None:
        embedder = MockEmbeddingProvider()
        vector_store = ChromaDBVectorStore(embedder, persist_directory=str(tmp_path / "chroma"))
        keyword_store = SQLiteKeywordStore(db_path=tmp_path / "kw.db")
        service = IngestionService(
            registry=SourceResolverRegistry(),
            processor=DocumentContentProcessor(embedder, TextChunker(overlap=0)),
            vector_store=vector_store,
            keyword_store=keyword_store,
            progress_tracker=progress_tracker,
            document_repository=keyword_store,
        )
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "policy.txt").write_text("Invoices are retained for ten years.")
        (docs / "guide.md").write_text("# Travel\nBook trains two weeks ahead.\n")

        report = await service.ingest_folder(str(docs))
        await service.ingest_folder(str(docs))

        assert report.failures == []
        documents = await service.list_ingested_documents()
        assert {d.file_name for d in documents} == {"policy.txt", "guide.md"}

        results = await HybridSearchService(vector_store, keyword_store).search("invoices retained", 3)

        assert 1 <= len(results) <= 2
        assert any("Invoices are retained" in c.content for c in results)
        assert len({c.dedup_key for c in results}) == len(results)

        assert await service.flush() is True
        assert await service.list_ingested_documents() == []
