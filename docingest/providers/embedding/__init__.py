"""Embedding provider adapters."""

from docingest.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider"]
