"""Abstract base class for text-embedding service providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    The content processor embeds chunks at ingestion time and the vector
    store embeds the query text at search time, so both must share one
    provider instance (same model, same dimension).
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        docingest.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors (e.g. ``768``)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short provider name used in logs and errors."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing service is reachable."""
