"""
Storage module - durable object store and the cache-aside accessor.

Provides:
- ADLSObjectStore: Azure Data Lake Storage Gen2 object store
- CacheAsideAccessor: cache-first load, store-then-cache save
"""

from cachebridge.storage.store import ADLSObjectStore, ObjectStore, StoreConfig
from cachebridge.storage.accessor import CacheAsideAccessor, TransformType

__all__ = [
    "ADLSObjectStore",
    "ObjectStore",
    "StoreConfig",
    "CacheAsideAccessor",
    "TransformType",
]
