"""Cache provider implementations."""

from ragdesk.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
