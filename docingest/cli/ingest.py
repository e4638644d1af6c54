"""Command-line interface for ingestion, search and question answering.

Usage::

    python -m docingest.cli folder ./docs --max-chunk-size 400
    python -m docingest.cli files notes.md gdrive://1AbC https://1drv.ms/w/s!xyz
    python -m docingest.cli search "retention policy" --limit 5
    python -m docingest.cli ask "How long are invoices kept?"
    python -m docingest.cli list
    python -m docingest.cli flush --yes

Provider construction is deferred into ``_run`` so ``--help`` stays fast.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from docingest.interfaces.progress_subscriber import IProgressSubscriber
from docingest.models.ingestion import IngestionProgress, IngestionReport
from docingest.utils.errors import DocIngestError


class _ConsoleProgress(IProgressSubscriber):
    """Prints one line per progress event."""

    async def receive_progress(self, progress: IngestionProgress) -> None:
        if progress.file_path:
            print(f"  [{progress.completed}/{progress.total}] {progress.file_path}")

    async def receive_completed(self, progress: IngestionProgress) -> None:
        print(f"  Done: {progress.completed}/{progress.total} document(s) processed")

    async def receive_message(self, message: str) -> None:
        print(f"  {message}")


def _option(args: argparse.Namespace, name: str, fallback: Any) -> Any:
    """Return the CLI value for *name*, else *fallback* from settings / config."""
    value = getattr(args, name)
    return fallback if value is None else value


def _print_report(report: IngestionReport) -> int:
    print()
    print(f"Documents: {report.completed}/{report.total}")
    print(f"Chunks written: {report.chunks_written}")
    if report.cancelled:
        print("Cancelled before all documents were processed.")
    for failure in report.failures:
        print(f"  FAILED {failure.identity_path}: {failure.error}")
    return 1 if report.failures else 0


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    components["progress_tracker"].register_subscriber(_ConsoleProgress())
    service = components["ingestion_service"]
    max_chunk_size = _option(args, "max_chunk_size", components["settings"].max_chunk_size)
    if args.command == "folder":
        report = await service.ingest_folder(args.path, max_chunk_size=max_chunk_size)
    else:
        report = await service.ingest_documents(args.inputs, max_chunk_size=max_chunk_size)
    return _print_report(report)


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    limit = _option(args, "limit", components["config"]["retrieval"]["search_limit"])
    chunks = await components["search_service"].search(args.query, limit)
    if not chunks:
        print("No results.")
        return 0
    for number, chunk in enumerate(chunks, start=1):
        meta = chunk.metadata
        page = f" p.{meta.page_number}" if meta.page_number else ""
        score = f"{chunk.retrieval_score:.3f}" if chunk.retrieval_score is not None else "-"
        print(f"[{number}] {meta.file_name}{page} ({meta.source.value}, score {score})")
        print(f"    {meta.file_path}#{chunk.index}")
        preview = " ".join(chunk.content.split())
        print(f"    {preview[:200]}{'...' if len(preview) > 200 else ''}")
    return 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    limit = _option(args, "limit", components["config"]["retrieval"]["rag_limit"])
    result = await components["rag_service"].answer_stream(args.question, limit=limit)
    async for delta in result.answer:
        print(delta, end="", flush=True)
    print()
    if result.references:
        print()
        print("References:")
        for file_path, chunks in result.references.items():
            print(f"  {file_path} ({len(chunks)} chunk(s))")
    return 0


async def _handle_list(components: dict[str, Any]) -> int:
    documents = await components["ingestion_service"].list_ingested_documents()
    if not documents:
        print("No documents ingested.")
        return 0
    for doc in documents:
        updated = doc.updated_at.isoformat(timespec="seconds") if doc.updated_at else "-"
        print(f"{doc.file_path}  [{doc.source.value}]  {doc.chunk_count} chunk(s)  {updated}")
    print(f"\nTotal: {len(documents)} document(s)")
    return 0


async def _handle_flush(args: argparse.Namespace, components: dict[str, Any]) -> int:
    if not args.yes:
        print("Refusing to delete both indexes without --yes.", file=sys.stderr)
        return 2
    deleted = await components["ingestion_service"].flush()
    print("Indexes deleted." if deleted else "Nothing to delete.")
    return 0


async def _run(args: argparse.Namespace) -> int:
    from docingest.main import build_components

    components = build_components(config_path=args.config)
    try:
        if args.command in ("folder", "files"):
            return await _handle_ingest(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        if args.command == "ask":
            return await _handle_ask(args, components)
        if args.command == "list":
            return await _handle_list(components)
        return await _handle_flush(args, components)
    except (DocIngestError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await components["http_client"].aclose()


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be zero or more, got {value}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docingest",
        description="Ingest documents into the hybrid index and query them.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config file")
    subparsers = parser.add_subparsers(dest="command")

    folder_parser = subparsers.add_parser("folder", help="Ingest every supported file in a folder")
    folder_parser.add_argument("path", help="Folder to scan recursively")
    folder_parser.add_argument("--max-chunk-size", type=_positive_int, default=None)

    files_parser = subparsers.add_parser("files", help="Ingest local paths or cloud links")
    files_parser.add_argument("inputs", nargs="+", help="Paths, gdrive://, onedrive://, share links")
    files_parser.add_argument("--max-chunk-size", type=_positive_int, default=None)

    search_parser = subparsers.add_parser("search", help="Hybrid vector + keyword search")
    search_parser.add_argument("query")
    search_parser.add_argument("--limit", type=_non_negative_int, default=None)

    ask_parser = subparsers.add_parser("ask", help="Answer a question from the indexed documents")
    ask_parser.add_argument("question")
    ask_parser.add_argument("--limit", type=_non_negative_int, default=None)

    subparsers.add_parser("list", help="List ingested documents")

    flush_parser = subparsers.add_parser("flush", help="Delete both indexes")
    flush_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
