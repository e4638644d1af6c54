"""Ingestion and retrieval data models.

Pydantic v2 models for chunks, their metadata, progress records and the
per-call ingestion report.  All models are frozen; the orchestrator uses
``model_copy(update=...)`` to stamp provenance onto processor output.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IngestionSource(str, Enum):
    """Where a document came from."""

    LOCAL = "Local"
    GOOGLE_DRIVE = "GoogleDrive"
    SHAREPOINT = "SharePoint"
    ONEDRIVE = "OneDrive"
    DROPBOX = "Dropbox"


class IngestionMetadata(BaseModel):
    """Structural and provenance metadata attached to every chunk."""

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(default="", description="Base name of the file the chunk came from.")
    file_type: str = Field(default="", description="Lower-case extension without the dot.")
    # Always the identity path once the orchestrator has stamped the chunk.
    file_path: str = Field(default="", description="Stable identity path of the parent document.")
    page_number: str | None = Field(default=None, description="Page label, if the format has pages.")
    section_title: str | None = Field(default=None, description="Nearest heading, if known.")
    sheet_name: str | None = Field(default=None, description="Sheet / table name for tabular input.")
    row_index: int | None = Field(default=None, ge=0, description="Row number for tabular input.")
    source: IngestionSource = Field(default=IngestionSource.LOCAL, description="Provenance tag.")


class DocumentChunk(BaseModel):
    """A bounded unit of extracted content, optionally embedded."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="The chunk's textual content.")
    embedding: list[float] | None = Field(
        default=None,
        description="Embedding vector; chunks without one only reach the keyword store.",
    )
    index: int = Field(ge=0, description="0-based position of the chunk within its document.")
    metadata: IngestionMetadata = Field(default_factory=IngestionMetadata)
    retrieval_score: float | None = Field(
        default=None,
        description="Relevance score assigned by the store that returned the chunk.",
    )

    @property
    def storage_id(self) -> str:
        """Deterministic write key shared by both stores: ``(file_path, index)``."""
        return f"{self.metadata.file_path}#idx:{self.index}"

    @property
    def dedup_key(self) -> tuple[str, str, str, str, str | None]:
        """Key used to collapse the same chunk returned by different stores."""
        meta = self.metadata
        return (self.content, meta.source.value, meta.file_name, meta.file_path, meta.page_number)


class IngestionProgress(BaseModel):
    """The single latest-progress record held by the progress tracker."""

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(default="", description="Document that triggered this update, if any.")
    completed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _completed_within_total(self) -> IngestionProgress:
        if self.completed > self.total:
            raise ValueError(f"completed ({self.completed}) exceeds total ({self.total})")
        return self


class DocumentFailure(BaseModel):
    """A document that could not be processed or persisted."""

    model_config = ConfigDict(frozen=True)

    identity_path: str
    error: str


class IngestionReport(BaseModel):
    """Outcome of one ``ingest_documents`` call."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0, description="Number of plan entries resolved.")
    completed: int = Field(default=0, ge=0, description="Number of plan entries processed.")
    chunks_written: int = Field(default=0, ge=0)
    failures: list[DocumentFailure] = Field(
        default_factory=list,
        description="Failures among the processed entries only.",
    )
    cancelled: bool = False

    @model_validator(mode="after")
    def _failures_within_completed(self) -> IngestionReport:
        if len(self.failures) > self.completed:
            raise ValueError(
                f"{len(self.failures)} failures reported for {self.completed} processed entries"
            )
        return self

    @property
    def succeeded(self) -> int:
        return self.completed - len(self.failures)


class IngestedDocument(BaseModel):
    """One row of the ingested-documents repository."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    file_name: str
    file_type: str = ""
    source: IngestionSource = IngestionSource.LOCAL
    chunk_count: int = Field(default=0, ge=0)
    updated_at: datetime | None = None
