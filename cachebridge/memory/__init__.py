"""
Memory module - cache backends and their tagged results.

Provides:
- RedisCache: Azure Cache for Redis with AAD or access-key auth
- InMemoryCache: process-local fallback with the same interface
- CacheHit / CacheMiss / CacheOk / CacheError: backend results
"""

from cachebridge.memory.cache import CacheConfig, CacheService, InMemoryCache, RedisCache
from cachebridge.memory.results import CacheError, CacheHit, CacheMiss, CacheOk

__all__ = [
    "CacheConfig",
    "CacheService",
    "InMemoryCache",
    "RedisCache",
    "CacheError",
    "CacheHit",
    "CacheMiss",
    "CacheOk",
]
