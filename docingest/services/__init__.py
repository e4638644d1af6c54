"""Application services: ingestion, retrieval and RAG."""
