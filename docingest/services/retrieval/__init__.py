"""Hybrid retrieval over the vector and keyword stores."""

from docingest.services.retrieval.hybrid_search import HybridSearchService, merge_unique

__all__ = ["HybridSearchService", "merge_unique"]
