"""SQLite FTS5 keyword store adapter.

Implements :class:`IDocumentStore` on a local SQLite database through
``aiosqlite``.  Chunk text lives in an FTS5 virtual table ranked with
``bm25()``; a companion ``<table>_documents`` table is the ingested-document
repository (one row per identity path).

Writes are keyed by ``(file_path, chunk_index)``: an upsert deletes the
existing row for that key before inserting, inside one transaction.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from docingest.interfaces.document_store import IDocumentRepository, IDocumentStore
from docingest.models.ingestion import (
    DocumentChunk,
    IngestedDocument,
    IngestionMetadata,
    IngestionSource,
)
from docingest.utils.errors import ConfigurationError, StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/keyword_index.db")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

_CREATE_FTS_SQL = """\
CREATE VIRTUAL TABLE IF NOT EXISTS {table} USING fts5(
    content,
    file_name,
    section_title,
    file_path UNINDEXED,
    chunk_index UNINDEXED,
    file_type UNINDEXED,
    page_number UNINDEXED,
    sheet_name UNINDEXED,
    row_index UNINDEXED,
    source UNINDEXED,
    tokenize = 'unicode61'
);
"""

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS {table}_documents (
    file_path   TEXT    PRIMARY KEY,
    file_name   TEXT    NOT NULL,
    file_type   TEXT    NOT NULL DEFAULT '',
    source      TEXT    NOT NULL,
    chunk_count INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_DELETE_CHUNK_SQL = "DELETE FROM {table} WHERE file_path = ? AND chunk_index = ?;"

_INSERT_CHUNK_SQL = """\
INSERT INTO {table} (
    content, file_name, section_title, file_path, chunk_index,
    file_type, page_number, sheet_name, row_index, source
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_COUNT_CHUNKS_SQL = "SELECT COUNT(*) FROM {table} WHERE file_path = ?;"

_UPSERT_DOCUMENT_SQL = """\
INSERT INTO {table}_documents (file_path, file_name, file_type, source, chunk_count)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(file_path)
DO UPDATE SET file_name   = excluded.file_name,
              file_type   = excluded.file_type,
              source      = excluded.source,
              chunk_count = excluded.chunk_count,
              updated_at  = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SEARCH_SQL = """\
SELECT content, file_name, section_title, file_path, chunk_index,
       file_type, page_number, sheet_name, row_index, source,
       bm25({table}) AS rank
FROM {table}
WHERE {table} MATCH ?
ORDER BY rank
LIMIT ?;
"""

_TABLE_EXISTS_SQL = "SELECT 1 FROM sqlite_master WHERE name = ?;"


class SQLiteKeywordStore(IDocumentStore, IDocumentRepository):
    """Keyword-relevance store backed by SQLite FTS5.

    Parameters
    ----------
    db_path:
        Database file; parent directories are created on demand.
    table:
        Base name of the FTS table.  Must be a plain SQL identifier.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, table: str = "semantic_docs") -> None:
        if not _IDENTIFIER_RE.match(table):
            raise ConfigurationError(
                message=f"Invalid keyword table name: {table!r}",
                provider_name=self.get_provider_name(),
            )
        self._db_path = Path(db_path)
        self._table = table

    # ------------------------------------------------------------------
    # IDocumentStore implementation
    # ------------------------------------------------------------------

    async def ensure_collection_exists(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(self._sql(_CREATE_FTS_SQL))
                await db.execute(self._sql(_CREATE_DOCUMENTS_SQL))
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword index '{self._table}' could not be created: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("keyword_index_ready", path=str(self._db_path), table=self._table)

    async def upsert(self, chunks: list[DocumentChunk]) -> int:
        """Write *chunks*, replacing any row with the same ``(file_path, index)``."""
        if not chunks:
            return 0

        touched: dict[str, IngestionMetadata] = {}
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for chunk in chunks:
                    meta = chunk.metadata
                    await db.execute(self._sql(_DELETE_CHUNK_SQL), (meta.file_path, chunk.index))
                    await db.execute(
                        self._sql(_INSERT_CHUNK_SQL),
                        (
                            chunk.content,
                            meta.file_name,
                            meta.section_title,
                            meta.file_path,
                            chunk.index,
                            meta.file_type,
                            meta.page_number,
                            meta.sheet_name,
                            meta.row_index,
                            meta.source.value,
                        ),
                    )
                    touched[meta.file_path] = meta

                for file_path, meta in touched.items():
                    cursor = await db.execute(self._sql(_COUNT_CHUNKS_SQL), (file_path,))
                    (count,) = await cursor.fetchone()
                    await db.execute(
                        self._sql(_UPSERT_DOCUMENT_SQL),
                        (file_path, meta.file_name, meta.file_type, meta.source.value, count),
                    )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("keyword_upsert", count=len(chunks), documents=len(touched))
        return len(chunks)

    async def delete_collection(self) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_TABLE_EXISTS_SQL, (self._table,))
                existed = await cursor.fetchone() is not None
                await db.execute(f"DROP TABLE IF EXISTS {self._table};")
                await db.execute(f"DROP TABLE IF EXISTS {self._table}_documents;")
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword delete_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("keyword_index_deleted", table=self._table, existed=existed)
        return existed

    async def delete_by_identity(self, identity_path: str) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    f"DELETE FROM {self._table} WHERE file_path = ?;", (identity_path,)
                )
                deleted = cursor.rowcount
                await db.execute(
                    f"DELETE FROM {self._table}_documents WHERE file_path = ?;", (identity_path,)
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword delete_by_identity failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("keyword_delete_by_identity", file_path=identity_path, deleted_count=deleted)
        return max(deleted, 0)

    async def search(self, query: str, size: int) -> list[DocumentChunk]:
        """Full-text search; ``retrieval_score`` is the negated bm25 rank."""
        match = self.build_match_expression(query)
        if size <= 0 or not match:
            return []
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(self._sql(_SEARCH_SQL), (match, size))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        chunks = [self._row_to_chunk(row) for row in rows]
        logger.info("keyword_query", query_length=len(query), results_count=len(chunks))
        return chunks

    def get_provider_name(self) -> str:
        return "sqlite_fts"

    # ------------------------------------------------------------------
    # Document repository
    # ------------------------------------------------------------------

    async def list_documents(self) -> list[IngestedDocument]:
        """Return every ingested document, most recently updated first."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_TABLE_EXISTS_SQL, (f"{self._table}_documents",))
                if await cursor.fetchone() is None:
                    return []
                cursor = await db.execute(
                    "SELECT file_path, file_name, file_type, source, chunk_count, updated_at "
                    f"FROM {self._table}_documents ORDER BY updated_at DESC, file_path"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Keyword list_documents failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            IngestedDocument(
                file_path=row["file_path"],
                file_name=row["file_name"],
                file_type=row["file_type"],
                source=IngestionSource(row["source"]),
                chunk_count=row["chunk_count"],
                updated_at=datetime.fromisoformat(row["updated_at"].replace("Z", "+00:00")),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def build_match_expression(query: str) -> str:
        """Turn free text into an FTS5 expression of quoted OR-ed terms.

        Quoting every token keeps operators and punctuation in user input
        from being parsed as FTS5 syntax.
        """
        tokens = _TOKEN_RE.findall(query)
        return " OR ".join(f'"{token}"' for token in dict.fromkeys(tokens))

    def _sql(self, template: str) -> str:
        return template.format(table=self._table)

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> DocumentChunk:
        row_index = row["row_index"]
        return DocumentChunk(
            content=row["content"],
            index=int(row["chunk_index"]),
            retrieval_score=-float(row["rank"]),
            metadata=IngestionMetadata(
                file_name=row["file_name"] or "",
                file_type=row["file_type"] or "",
                file_path=row["file_path"],
                page_number=row["page_number"],
                section_title=row["section_title"],
                sheet_name=row["sheet_name"],
                row_index=int(row_index) if row_index is not None else None,
                source=IngestionSource(row["source"]),
            ),
        )
