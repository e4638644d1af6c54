"""Keyword store adapters."""

from docingest.providers.keyword_store.sqlite_fts_provider import SQLiteKeywordStore

__all__ = ["SQLiteKeywordStore"]
