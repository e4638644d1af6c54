"""Cache provider adapters."""

from docingest.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
