"""Vector store adapters."""

from docingest.providers.vector_store.chromadb_provider import ChromaDBVectorStore

__all__ = ["ChromaDBVectorStore"]
