"""Orchestrator for the document ingestion pipeline.

:class:`IngestionService` coordinates the resolver registry, the content
processor, both backing stores and the progress tracker.  None of them
know about each other.  One ``ingest_documents`` call runs these stages:

    1. ensure    -- both stores' collection / index exist
    2. resolve   -- every input becomes a PlanEntry (first failure aborts)
    3. announce  -- progress {0, total}
    4. pre-delete-- drop existing chunks for every identity path
    5. process   -- all documents concurrently (optionally capped)
    6. stamp     -- provenance and identity path onto every chunk
    7. persist   -- upsert into both stores, then progress {n, total}
    8. complete  -- completion event {processed, processed}
    9. cleanup   -- release every lease, whatever happened above

A document that fails in stages 4-7 is recorded in the returned
:class:`IngestionReport` and the batch continues.  Cancellation is
cooperative: it is checked before each input is resolved and before each
document is persisted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from docingest.models.ingestion import (
    DocumentChunk,
    DocumentFailure,
    IngestedDocument,
    IngestionProgress,
    IngestionReport,
)
from docingest.utils.concurrency import throttled_gather
from docingest.utils.errors import SourceNotFoundError

if TYPE_CHECKING:
    from docingest.interfaces.content_processor import IContentProcessor
    from docingest.interfaces.document_store import IDocumentRepository, IDocumentStore
    from docingest.models.plan import PlanEntry
    from docingest.pipeline.progress_tracker import ProgressTracker
    from docingest.services.ingestion.source_registry import SourceResolverRegistry

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CHUNK_SIZE = 500


def _is_cancelled(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def _check_chunk_size(max_chunk_size: int) -> None:
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")


class IngestionService:
    """Builds a processing plan and writes every document to both stores.

    Parameters
    ----------
    registry:
        Maps inputs to plan entries.
    processor:
        Turns a local file into chunks.
    vector_store:
        Similarity store; receives only embedded chunks.
    keyword_store:
        Keyword store; receives every chunk.
    progress_tracker:
        Caches the latest progress and notifies subscribers.
    document_repository:
        Optional source for :meth:`list_ingested_documents`.
    max_concurrency:
        Cap on documents processed at once; ``0`` means unbounded.
    """

    def __init__(
        self,
        registry: SourceResolverRegistry,
        processor: IContentProcessor,
        vector_store: IDocumentStore,
        keyword_store: IDocumentStore,
        progress_tracker: ProgressTracker,
        document_repository: IDocumentRepository | None = None,
        max_concurrency: int = 0,
    ) -> None:
        self._registry = registry
        self._processor = processor
        self._vector_store = vector_store
        self._keyword_store = keyword_store
        self._tracker = progress_tracker
        self._document_repository = document_repository
        self._max_concurrency = max_concurrency

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_folder(
        self,
        folder_path: str,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        cancel: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Ingest every supported file below *folder_path*, recursively.

        Raises
        ------
        SourceNotFoundError
            If *folder_path* is not an existing directory.
        ValueError
            If *max_chunk_size* is not positive.
        """
        _check_chunk_size(max_chunk_size)
        folder = Path(folder_path)
        if not folder.is_dir():
            logger.error("ingest_folder_not_found", folder_path=folder_path)
            raise SourceNotFoundError(message=f"Folder not found: {folder_path}")

        extensions = {ext.lower() for ext in self._processor.supported_extensions()}
        files = sorted(
            str(p) for p in folder.rglob("*") if p.is_file() and p.suffix.lower() in extensions
        )
        logger.info("ingest_folder_listed", folder_path=folder_path, files=len(files))
        return await self.ingest_documents(files, max_chunk_size=max_chunk_size, cancel=cancel)

    async def ingest_documents(
        self,
        inputs: Iterable[str],
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        cancel: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Resolve, process and persist *inputs* as one batch.

        Parameters
        ----------
        inputs:
            Local paths and/or cloud URIs / share links.
        max_chunk_size:
            Passed through to the content processor.
        cancel:
            Set it to stop the batch after the current document.

        Returns
        -------
        IngestionReport
            Counts plus one :class:`DocumentFailure` per failed document.

        Raises
        ------
        docingest.utils.errors.NoResolverError
            If any input cannot be resolved; nothing is processed.
        ValueError
            If *max_chunk_size* is not positive; nothing is touched.
        docingest.utils.errors.StoreError
            If a store's collection / index cannot be ensured.
        """
        _check_chunk_size(max_chunk_size)
        await self._vector_store.ensure_collection_exists()
        await self._keyword_store.ensure_collection_exists()

        plans: list[PlanEntry] = []
        interrupted = False
        try:
            for source in inputs:
                if _is_cancelled(cancel):
                    logger.info("ingestion_resolution_cancelled", resolved=len(plans))
                    interrupted = True
                    break
                plans.append(await self._registry.resolve(source))

            return await self._run_plan(plans, max_chunk_size, cancel, interrupted)
        finally:
            self._release_leases(plans)

    async def flush(self) -> bool:
        """Delete the whole collection / index in both stores and reset progress.

        Returns
        -------
        bool
            ``True`` if either store had something to delete.
        """
        vector_deleted = await self._vector_store.delete_collection()
        keyword_deleted = await self._keyword_store.delete_collection()
        await self._tracker.reset()
        logger.warning(
            "stores_flushed",
            vector_deleted=vector_deleted,
            keyword_deleted=keyword_deleted,
        )
        return vector_deleted or keyword_deleted

    async def get_progress(self) -> IngestionProgress:
        """Return the latest progress record, zeroed when none is cached."""
        return await self._tracker.get_progress()

    async def list_ingested_documents(self) -> list[IngestedDocument]:
        """Return the documents currently held in the stores."""
        if self._document_repository is None:
            return []
        return await self._document_repository.list_documents()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _run_plan(
        self,
        plans: list[PlanEntry],
        max_chunk_size: int,
        cancel: asyncio.Event | None,
        interrupted: bool = False,
    ) -> IngestionReport:
        total = len(plans)
        logger.info("ingestion_started", total=total, max_chunk_size=max_chunk_size)
        await self._tracker.report_progress(IngestionProgress(completed=0, total=total))
        await self._tracker.send_message(f"Ingestion started: {total} document(s)")

        failures: dict[int, str] = {}

        # Stale chunks must be gone before anything new is written, or a
        # document that shrank would keep its old tail.
        for i, plan in enumerate([] if _is_cancelled(cancel) else plans):
            try:
                await self._vector_store.delete_by_identity(plan.identity_path)
                await self._keyword_store.delete_by_identity(plan.identity_path)
            except Exception as exc:
                failures[i] = str(exc)
                logger.error("pre_delete_failed", identity_path=plan.identity_path, error=str(exc))

        pending = [] if _is_cancelled(cancel) else [i for i in range(total) if i not in failures]
        results = await throttled_gather(
            [self._processor.process(plans[i].local_path, max_chunk_size) for i in pending],
            limit=self._max_concurrency,
        )
        outcomes = dict(zip(pending, results))

        completed = 0
        chunks_written = 0
        cancelled = interrupted
        for i, plan in enumerate(plans):
            if _is_cancelled(cancel):
                cancelled = True
                logger.info("ingestion_cancelled", completed=completed, total=total)
                break

            if i not in failures:
                outcome = outcomes[i]
                if isinstance(outcome, BaseException):
                    failures[i] = str(outcome)
                    logger.error(
                        "document_processing_failed",
                        identity_path=plan.identity_path,
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                else:
                    try:
                        chunks_written += await self._persist(plan, outcome)
                    except Exception as exc:
                        failures[i] = str(exc)
                        logger.error(
                            "document_persist_failed",
                            identity_path=plan.identity_path,
                            error=str(exc),
                        )

            completed += 1
            await self._tracker.report_progress(
                IngestionProgress(file_path=plan.identity_path, completed=completed, total=total)
            )

        await self._tracker.report_completed(
            IngestionProgress(completed=completed, total=completed)
        )

        report = IngestionReport(
            total=total,
            completed=completed,
            chunks_written=chunks_written,
            failures=[
                DocumentFailure(identity_path=plans[i].identity_path, error=failures[i])
                for i in sorted(failures)
                if i < completed
            ],
            cancelled=cancelled,
        )
        await self._tracker.send_message(
            f"Ingestion finished: {report.succeeded} succeeded, {len(report.failures)} failed"
        )
        logger.info(
            "ingestion_finished",
            total=total,
            completed=completed,
            chunks_written=chunks_written,
            failures=len(report.failures),
            cancelled=cancelled,
        )
        return report

    async def _persist(self, plan: PlanEntry, chunks: list[DocumentChunk]) -> int:
        stamped = self._stamp(plan, chunks)
        await self._vector_store.upsert(stamped)
        await self._keyword_store.upsert(stamped)
        logger.info(
            "document_ingested",
            identity_path=plan.identity_path,
            source=plan.provenance.value,
            chunks=len(stamped),
        )
        return len(stamped)

    @staticmethod
    def _stamp(plan: PlanEntry, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Overwrite provenance and identity path, which the processor cannot know."""
        return [
            chunk.model_copy(
                update={
                    "metadata": chunk.metadata.model_copy(
                        update={"source": plan.provenance, "file_path": plan.identity_path}
                    )
                }
            )
            for chunk in chunks
        ]

    @staticmethod
    def _release_leases(plans: list[PlanEntry]) -> None:
        for plan in plans:
            if plan.lease is None:
                continue
            try:
                plan.lease.release()
            except Exception as exc:
                logger.warning(
                    "lease_release_failed",
                    identity_path=plan.identity_path,
                    path=str(plan.lease.path),
                    error=str(exc),
                )
