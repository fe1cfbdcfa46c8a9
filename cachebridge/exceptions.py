"""
Exceptions raised across service boundaries.

Cache failures never appear here: the cache layer reports them as
CacheError results instead (see cachebridge.memory.results).
"""

from typing import Optional


class CacheBridgeError(Exception):
    """Base class for all cachebridge errors."""


class StoreError(CacheBridgeError):
    """Object store request failed."""

    def __init__(self, key: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{message} (key={key})")
        self.key = key
        self.message = message
        self.cause = cause


class ObjectNotFoundError(StoreError):
    """Requested key does not exist in the object store."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(key, "Object not found", cause)


class InferenceError(CacheBridgeError):
    """Model invocation failed (transport, protocol or backend)."""
