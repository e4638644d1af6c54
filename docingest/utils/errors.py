"""Custom exception hierarchy for docingest.

All application exceptions inherit from :class:`DocIngestError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "chromadb", "sqlite_fts", "google_drive") caused the
failure.

    DocIngestError  (base)
    +-- NoResolverError          (input: no resolver accepts the identifier)
    +-- SourceNotFoundError      (input: folder or file does not exist)
    +-- ResolverError            (cloud lookup / download failure)
    +-- UnsupportedFileTypeError (processor cannot handle the extension)
    +-- ContentProcessingError   (text extraction / chunking failure)
    +-- EmbeddingError           (embedding service failure)
    +-- StoreError               (vector or keyword store failure)
    +-- LLMError                 (completion service failure)
    +-- ConfigurationError       (startup / missing config)

Input errors abort an ingestion call.  Processing and persistence errors
are recorded per document and the batch continues.
"""


class DocIngestError(Exception):
    """Base exception for all docingest errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[chromadb] upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class NoResolverError(DocIngestError):
    """Raised when no registered resolver accepts an input identifier."""

    def __init__(
        self,
        message: str = "No resolver for input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceNotFoundError(DocIngestError):
    """Raised when a folder or file passed to ingestion does not exist."""

    def __init__(
        self,
        message: str = "Source not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ResolverError(DocIngestError):
    """Raised when a cloud resolver fails to look up or download a file."""

    def __init__(
        self,
        message: str = "Failed to resolve cloud file",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Per-document errors
# ---------------------------------------------------------------------------

class UnsupportedFileTypeError(DocIngestError):
    """Raised when the content processor has no handler for a file extension."""

    def __init__(
        self,
        message: str = "Unsupported file type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContentProcessingError(DocIngestError):
    """Raised when text extraction or chunking of a document fails."""

    def __init__(
        self,
        message: str = "Content processing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(DocIngestError):
    """Raised when the embedding service call fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(DocIngestError):
    """Raised when a vector or keyword store operation fails.

    ``provider_name`` is always the store name so callers can tell which
    backend failed.
    """

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DocIngestError):
    """Raised when a completion call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocIngestError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
