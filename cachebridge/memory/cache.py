"""
Cache backends for conversation history and cache-aside reads.

Uses Azure Cache for Redis with Microsoft Entra ID (AAD) authentication,
or an access key when one is configured. Every operation returns a tagged
result; backend exceptions are converted to CacheError and never raised.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union
from dataclasses import dataclass

import structlog

from cachebridge.memory.results import (
    CacheError,
    CacheHit,
    CacheMiss,
    CacheOk,
    CacheReadResult,
    CacheWriteResult,
)

logger = structlog.get_logger(__name__)

CacheValue = Union[str, bytes]

# Reconnect this many seconds before the Entra ID token expires
TOKEN_REFRESH_MARGIN = 300


@dataclass
class CacheConfig:
    """Redis cache configuration."""
    host: str = ""
    port: int = 6380  # Azure Cache for Redis uses SSL on 6380
    ssl: bool = True
    database: int = 0
    cache_name: str = ""
    default_ttl: int = 300
    access_key: str = ""


class CacheService(Protocol):
    """Cache operations used by the orchestrators."""

    async def get(self, cache_name: str, key: str) -> CacheReadResult: ...

    async def set(
        self, cache_name: str, key: str, value: CacheValue, ttl: Optional[int] = None
    ) -> CacheWriteResult: ...

    async def get_list(self, cache_name: str, key: str) -> CacheReadResult: ...

    async def append_list(
        self, cache_name: str, key: str, values: Sequence[str], ttl: Optional[int] = None
    ) -> CacheWriteResult: ...

    async def close(self) -> None: ...


def _make_key(cache_name: str, key: str) -> str:
    """Namespace a key under its cache name."""
    return f"{cache_name}:{key}"


def _to_bytes(value: CacheValue) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _error(exc: BaseException) -> CacheError:
    return CacheError(message=str(exc), error_type=type(exc).__name__)


class RedisCache:
    """
    Azure Cache for Redis client.

    Authenticates with DefaultAzureCredential unless an access key is set.
    Scalars are stored with SET EX, conversation lists with RPUSH/LRANGE.
    Values are kept as raw bytes so binary payloads survive untouched.
    """

    def __init__(self, config: CacheConfig):
        """
        Initialize Redis cache.

        Args:
            config: CacheConfig with connection settings
        """
        if not config.host:
            raise ValueError("RedisCache requires a host")
        self.config = config
        self._client = None
        self._credential = None
        self._token_expires_on: Optional[int] = None
        self._connect_lock = asyncio.Lock()

    def _token_expiring(self) -> bool:
        if self._token_expires_on is None:
            return False
        return time.time() >= self._token_expires_on - TOKEN_REFRESH_MARGIN

    async def _connect(self):
        """
        Return a connected client, creating it on first use.

        With Entra ID auth the client is rebuilt with a fresh token shortly
        before the current one expires.
        """
        if self._client is not None and not self._token_expiring():
            return self._client

        async with self._connect_lock:
            if self._client is not None:
                if not self._token_expiring():
                    return self._client
                logger.info("Redis token expiring, reconnecting", host=self.config.host)
                await self._disconnect()

            import redis.asyncio as redis_async

            if self.config.access_key:
                username, password = None, self.config.access_key
            else:
                username, password = await self._aad_credentials()

            client = redis_async.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.database,
                username=username,
                password=password,
                ssl=self.config.ssl,
                decode_responses=False,
                socket_timeout=10,
                socket_connect_timeout=10,
            )
            await client.ping()
            logger.info("Redis cache connected", host=self.config.host)
            self._client = client
            return client

    async def _disconnect(self) -> None:
        """Drop the current client and credential, logging close failures."""
        client, credential = self._client, self._credential
        self._client = None
        self._credential = None
        self._token_expires_on = None
        if client:
            try:
                await client.close()
            except Exception as e:
                logger.warning("Error closing Redis client", error=str(e))
        if credential:
            try:
                await credential.close()
            except Exception as e:
                logger.warning("Error closing Redis credential", error=str(e))

    async def _aad_credentials(self) -> Tuple[str, str]:
        """Fetch an Entra ID token and the OID Redis expects as username."""
        from azure.identity.aio import DefaultAzureCredential
        import jwt

        self._credential = DefaultAzureCredential()
        token_response = await self._credential.get_token(
            "https://redis.azure.com/.default"
        )
        self._token_expires_on = token_response.expires_on

        # Azure Cache for Redis requires username = OID from the AAD token
        try:
            decoded = jwt.decode(
                token_response.token,
                options={"verify_signature": False}
            )
            username = decoded.get("oid", "")
            logger.debug("Extracted OID from token", oid=username[:8] + "..." if username else "N/A")
        except jwt.PyJWTError as e:
            logger.warning("Could not decode token for OID, using empty username", error=str(e))
            username = ""

        return username, token_response.token

    async def get(self, cache_name: str, key: str) -> CacheReadResult:
        """Read a scalar value."""
        try:
            client = await self._connect()
            data = await client.get(_make_key(cache_name, key))
        except Exception as e:
            return _error(e)

        if data is None:
            return CacheMiss()
        return CacheHit(value=bytes(data))

    async def set(
        self,
        cache_name: str,
        key: str,
        value: CacheValue,
        ttl: Optional[int] = None
    ) -> CacheWriteResult:
        """
        Store a scalar value.

        Args:
            cache_name: Namespace for the key
            key: Cache key
            value: Text or bytes to store
            ttl: Optional TTL override in seconds
        """
        ttl = ttl or self.config.default_ttl
        try:
            client = await self._connect()
            await client.set(_make_key(cache_name, key), _to_bytes(value), ex=ttl)
        except Exception as e:
            return _error(e)

        logger.debug("Cache set", key=key, ttl=ttl)
        return CacheOk()

    async def get_list(self, cache_name: str, key: str) -> CacheReadResult:
        """Fetch a whole list in insertion order. An empty list is a miss."""
        try:
            client = await self._connect()
            items = await client.lrange(_make_key(cache_name, key), 0, -1)
        except Exception as e:
            return _error(e)

        if not items:
            return CacheMiss()
        return CacheHit(value=[bytes(item) for item in items])

    async def append_list(
        self,
        cache_name: str,
        key: str,
        values: Sequence[str],
        ttl: Optional[int] = None
    ) -> CacheWriteResult:
        """
        Concatenate values to the back of a list and refresh its TTL.

        RPUSH and EXPIRE run in one MULTI block.
        """
        if not values:
            return CacheOk()

        ttl = ttl or self.config.default_ttl
        full_key = _make_key(cache_name, key)
        try:
            client = await self._connect()
            pipe = client.pipeline(transaction=True)
            pipe.rpush(full_key, *[_to_bytes(v) for v in values])
            pipe.expire(full_key, ttl)
            await pipe.execute()
        except Exception as e:
            return _error(e)

        logger.debug("Cache list append", key=key, count=len(values), ttl=ttl)
        return CacheOk()

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
        self._token_expires_on = None
        logger.debug("Redis cache closed")


class InMemoryCache:
    """
    In-process cache with the same interface as RedisCache.

    Used when no Redis host is configured, and in tests.
    Data is lost on application restart.
    """

    def __init__(self, default_ttl: int = 300):
        self._store: Dict[str, Union[bytes, List[bytes]]] = {}
        self._expires: Dict[str, datetime] = {}
        self.default_ttl = default_ttl

    def _touch(self, full_key: str, ttl: Optional[int]) -> None:
        seconds = ttl or self.default_ttl
        self._expires[full_key] = datetime.now(timezone.utc) + timedelta(seconds=seconds)

    def _cleanup_expired(self) -> None:
        """Remove expired entries."""
        now = datetime.now(timezone.utc)
        expired = [k for k, at in self._expires.items() if at <= now]
        for k in expired:
            self._store.pop(k, None)
            self._expires.pop(k, None)

    async def get(self, cache_name: str, key: str) -> CacheReadResult:
        self._cleanup_expired()
        data = self._store.get(_make_key(cache_name, key))
        if data is None or isinstance(data, list):
            return CacheMiss()
        return CacheHit(value=data)

    async def set(
        self,
        cache_name: str,
        key: str,
        value: CacheValue,
        ttl: Optional[int] = None
    ) -> CacheWriteResult:
        full_key = _make_key(cache_name, key)
        self._store[full_key] = _to_bytes(value)
        self._touch(full_key, ttl)
        return CacheOk()

    async def get_list(self, cache_name: str, key: str) -> CacheReadResult:
        self._cleanup_expired()
        data = self._store.get(_make_key(cache_name, key))
        if not data or not isinstance(data, list):
            return CacheMiss()
        return CacheHit(value=list(data))

    async def append_list(
        self,
        cache_name: str,
        key: str,
        values: Sequence[str],
        ttl: Optional[int] = None
    ) -> CacheWriteResult:
        self._cleanup_expired()
        full_key = _make_key(cache_name, key)
        existing = self._store.get(full_key)
        if existing is not None and not isinstance(existing, list):
            return CacheError(message="Key holds a scalar value", error_type="WRONGTYPE")
        items = list(existing or [])
        items.extend(_to_bytes(v) for v in values)
        self._store[full_key] = items
        self._touch(full_key, ttl)
        return CacheOk()

    async def close(self) -> None:
        """Clear memory store."""
        self._store.clear()
        self._expires.clear()
