"""
Cache-aside accessor for the object store.

Reads check the cache first and fall back to the store on a miss.
Writes go to the store first, then through to the cache.
"""

import json
from enum import Enum
from typing import Any, Optional, Union

import structlog

from cachebridge.exceptions import ObjectNotFoundError, StoreError
from cachebridge.memory.cache import CacheService
from cachebridge.memory.results import CacheError, CacheHit, CacheMiss, CacheOk
from cachebridge.storage.store import ObjectStore

logger = structlog.get_logger(__name__)


class TransformType(str, Enum):
    """How a stored value is decoded on read."""
    JSON = "json"
    STRING = "string"
    BINARY = "binary"


# dict (or any JSON value) for json, str for string, bytes for binary
LoadResult = Any


def _decode(raw: bytes, transform: TransformType) -> LoadResult:
    if transform is TransformType.JSON:
        return json.loads(raw.decode("utf-8"))
    if transform is TransformType.BINARY:
        return bytes(raw)
    return raw.decode("utf-8", errors="replace")


def _empty(transform: TransformType) -> LoadResult:
    if transform is TransformType.JSON:
        return {}
    if transform is TransformType.BINARY:
        return b""
    return ""


def _encode(value: Any) -> Union[str, bytes]:
    """Serialize dicts to JSON; text and bytes pass through unchanged."""
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, bytearray):
        return bytes(value)
    raise TypeError(
        f"Cannot store value of type {type(value).__name__}; "
        "pass a dict, str or bytes"
    )


class CacheAsideAccessor:
    """
    Cache-aside reads and write-through saves for one bucket.

    Cache problems never fail a call. Store problems do, except a missing
    key on load, which returns an empty value of the requested type.
    """

    def __init__(
        self,
        cache: CacheService,
        store: ObjectStore,
        cache_name: str,
        bucket: str,
        default_ttl: Optional[int] = None,
    ):
        self._cache = cache
        self._store = store
        self.cache_name = cache_name
        self.bucket = bucket
        self.default_ttl = default_ttl

    async def load(
        self,
        key: str,
        transform: Union[TransformType, str, None] = TransformType.STRING
    ) -> LoadResult:
        """
        Load a value, checking the cache before the store.

        A store hit is returned as-is; the cache is not repopulated.

        Args:
            key: Full file name, including prefix
            transform: "json", "string" (default) or "binary"; None means "string".
                String values are decoded as UTF-8 with invalid bytes replaced.

        Returns:
            The decoded value, or {} / "" / b"" when the key does not exist

        Raises:
            StoreError: The store failed for a reason other than a missing key
        """
        if not key:
            raise ValueError("key is required")
        transform = TransformType.STRING if transform is None else TransformType(transform)

        cached = await self._cache.get(self.cache_name, key)
        if isinstance(cached, CacheHit):
            return _decode(cached.value_bytes(), transform)
        elif isinstance(cached, CacheError):
            logger.error("Cache read failed", key=key, error=str(cached))
        elif isinstance(cached, CacheMiss):
            logger.info("Cache miss", key=key)

        try:
            raw = await self._store.get(self.bucket, key)
        except ObjectNotFoundError:
            logger.warning("Key not found in bucket", key=key, bucket=self.bucket)
            return _empty(transform)
        except StoreError as e:
            logger.error("Store read failed", key=key, bucket=self.bucket, error=str(e))
            raise

        return _decode(raw, transform)

    async def save(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        is_public: bool = False
    ) -> None:
        """
        Save a value to the store, then to the cache.

        The cache write never fails the call: errors are logged as warnings.

        Args:
            key: Full file name, including prefix
            value: dict (stored as JSON), str or bytes
            ttl: Cache TTL in seconds (defaults to the cache's default)
            is_public: Grant public read on the stored object

        Raises:
            TypeError: The value has no storable form
            StoreError: The store write failed
        """
        if not key:
            raise ValueError("key is required")
        payload = _encode(value)
        body = payload.encode("utf-8") if isinstance(payload, str) else payload

        try:
            await self._store.put(self.bucket, key, body, public_read=is_public)
        except StoreError as e:
            logger.error("Store write failed", key=key, bucket=self.bucket, error=str(e))
            raise

        result = await self._cache.set(self.cache_name, key, payload, ttl=ttl or self.default_ttl)
        if isinstance(result, CacheError):
            logger.warning("Error updating cache", key=key, error=str(result))
        elif isinstance(result, CacheOk):
            logger.info("Updated cache", key=key)
