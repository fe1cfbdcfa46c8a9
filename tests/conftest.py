"""
Shared fixtures and mock backend clients.

Mocks stand in for redis.asyncio, the ADLS file system clients and the
Azure OpenAI client so tests run without real infrastructure.
"""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.core.exceptions import ResourceNotFoundError

from cachebridge.config import AppConfig
from cachebridge.conversation.inference import InferenceConfig, InferenceResponse
from cachebridge.exceptions import ObjectNotFoundError
from cachebridge.memory.cache import CacheConfig, InMemoryCache
from cachebridge.memory.results import CacheError
from cachebridge.storage.store import StoreConfig


# =============================================================================
# Mock Redis
# =============================================================================

class MockRedisClient:
    """Mock Redis client for testing without real Redis."""

    def __init__(self):
        self._store: Dict[str, object] = {}
        self._ttls: Dict[str, int] = {}
        self.closed = False

    async def ping(self):
        return True

    async def get(self, key: str) -> Optional[bytes]:
        value = self._store.get(key)
        return value if isinstance(value, bytes) else None

    async def set(self, key: str, value: bytes, ex: Optional[int] = None):
        self._store[key] = value
        if ex is not None:
            self._ttls[key] = ex

    async def lrange(self, key: str, start: int, end: int) -> List[bytes]:
        value = self._store.get(key, [])
        return list(value) if isinstance(value, list) else []

    def pipeline(self, transaction: bool = True):
        return MockRedisPipeline(self)

    async def close(self):
        self.closed = True


class MockRedisPipeline:
    """Mock Redis MULTI pipeline: commands are queued, applied on execute."""

    def __init__(self, client: MockRedisClient):
        self._client = client
        self._commands = []

    def rpush(self, key: str, *values: bytes):
        self._commands.append(("rpush", key, values))
        return self

    def expire(self, key: str, ttl: int):
        self._commands.append(("expire", key, ttl))
        return self

    async def execute(self):
        results = []
        for cmd, key, arg in self._commands:
            if cmd == "rpush":
                items = self._client._store.setdefault(key, [])
                items.extend(arg)
                results.append(len(items))
            elif cmd == "expire":
                self._client._ttls[key] = arg
                results.append(True)
        return results


class FailingRedisClient:
    """Redis client whose every call fails."""

    async def ping(self):
        raise ConnectionError("Connection refused")

    async def get(self, key):
        raise ConnectionError("Connection refused")

    async def set(self, key, value, ex=None):
        raise ConnectionError("Connection refused")

    async def lrange(self, key, start, end):
        raise ConnectionError("Connection refused")

    def pipeline(self, transaction: bool = True):
        pipe = MagicMock()
        pipe.execute = AsyncMock(side_effect=ConnectionError("Connection refused"))
        return pipe

    async def close(self):
        pass


# =============================================================================
# Mock cache service (tagged results)
# =============================================================================

class ErrorCache(InMemoryCache):
    """Cache service that reports a backend error on every call."""

    def __init__(self):
        super().__init__()
        self.calls: List[str] = []

    async def get(self, cache_name, key):
        self.calls.append("get")
        return CacheError(message="cache unavailable", error_type="ConnectionError")

    async def set(self, cache_name, key, value, ttl=None):
        self.calls.append("set")
        return CacheError(message="cache unavailable", error_type="ConnectionError")

    async def get_list(self, cache_name, key):
        self.calls.append("get_list")
        return CacheError(message="cache unavailable", error_type="ConnectionError")

    async def append_list(self, cache_name, key, values, ttl=None):
        self.calls.append("append_list")
        return CacheError(message="cache unavailable", error_type="ConnectionError")


# =============================================================================
# Mock ADLS
# =============================================================================

class MockADLSDownload:
    """Mock ADLS download for testing."""

    def __init__(self, data: bytes):
        self._data = data

    async def readall(self) -> bytes:
        return self._data


class MockADLSFileClient:
    """Mock ADLS file client for testing."""

    def __init__(self, file_system: "MockADLSFileSystem", path: str):
        self._file_system = file_system
        self._path = path

    async def download_file(self):
        if self._path not in self._file_system.files:
            raise ResourceNotFoundError("The specified path does not exist. PathNotFound")
        return MockADLSDownload(self._file_system.files[self._path])

    async def upload_data(self, data: bytes, overwrite: bool = True, **kwargs):
        self._file_system.files[self._path] = data
        self._file_system.uploads.append(self._path)

    async def set_access_control(self, acl: str = None, **kwargs):
        self._file_system.acls[self._path] = acl


class MockADLSFileSystem:
    """Mock ADLS file system client for testing."""

    def __init__(self, exists: bool = True):
        self.exists = exists
        self.files: Dict[str, bytes] = {}
        self.acls: Dict[str, str] = {}
        self.uploads: List[str] = []

    async def get_file_system_properties(self):
        if not self.exists:
            raise ResourceNotFoundError("ContainerNotFound")
        return MagicMock()

    async def create_file_system(self):
        self.exists = True

    def get_file_client(self, path: str):
        return MockADLSFileClient(self, path)


class MockADLSService:
    """Mock DataLakeServiceClient holding named file systems."""

    def __init__(self):
        self.file_systems: Dict[str, MockADLSFileSystem] = {}
        self.closed = False

    def get_file_system_client(self, name: str) -> MockADLSFileSystem:
        if name not in self.file_systems:
            self.file_systems[name] = MockADLSFileSystem(exists=False)
        return self.file_systems[name]

    async def close(self):
        self.closed = True


class MockObjectStore:
    """ObjectStore double recording calls; raises the configured error."""

    def __init__(self, error: Optional[Exception] = None):
        self.objects: Dict[str, bytes] = {}
        self.public: Dict[str, bool] = {}
        self.error = error
        self.gets: List[str] = []
        self.puts: List[str] = []

    async def get(self, bucket: str, key: str) -> bytes:
        self.gets.append(key)
        if self.error is not None:
            raise self.error
        if key not in self.objects:
            raise ObjectNotFoundError(key)
        return self.objects[key]

    async def put(self, bucket: str, key: str, body: bytes, public_read: bool = False) -> None:
        self.puts.append(key)
        if self.error is not None:
            raise self.error
        self.objects[key] = body
        self.public[key] = public_read

    async def close(self) -> None:
        pass


# =============================================================================
# Mock inference
# =============================================================================

class MockInference:
    """InferenceService double that echoes the last user message."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def invoke(self, turns, system_message, model_id, max_output_tokens):
        self.calls.append({
            "turns": list(turns),
            "system_message": system_message,
            "model_id": model_id,
            "max_output_tokens": max_output_tokens,
        })
        if self.error is not None:
            raise self.error
        return InferenceResponse(content_blocks=[
            {"type": "text", "text": f"Response to: {turns[-1].text}"}
        ])

    async def close(self) -> None:
        pass


def make_openai_client(content: Optional[str] = "Paris"):
    """Build an AsyncAzureOpenAI stand-in returning one choice."""
    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    client.chat.completions.create = AsyncMock(return_value=response)
    client.close = AsyncMock()
    return client


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def cache_config():
    return CacheConfig(
        host="test-redis.redis.cache.windows.net",
        port=6380,
        ssl=True,
        cache_name="test-cache",
        default_ttl=300,
    )


@pytest.fixture
def store_config():
    return StoreConfig(account_name="teststorage", bucket="test-bucket")


@pytest.fixture
def inference_config():
    return InferenceConfig(
        endpoint="https://test.openai.azure.com",
        model_id="gpt-4o",
        api_key="test-key",
    )


@pytest.fixture
def app_config(cache_config, store_config, inference_config):
    return AppConfig(cache=cache_config, store=store_config, inference=inference_config)


@pytest.fixture
def mock_redis():
    return MockRedisClient()


@pytest.fixture
def mock_adls():
    return MockADLSService()


@pytest.fixture
def memory_cache():
    return InMemoryCache(default_ttl=300)


@pytest.fixture
def error_cache():
    return ErrorCache()


@pytest.fixture
def object_store():
    return MockObjectStore()


@pytest.fixture
def mock_inference():
    return MockInference()


@pytest.fixture
def failing_redis():
    return FailingRedisClient()


@pytest.fixture
def make_store():
    """Factory for object store doubles, optionally failing."""
    return MockObjectStore


@pytest.fixture
def make_inference():
    """Factory for inference doubles, optionally failing."""
    return MockInference


@pytest.fixture
def openai_client_factory():
    return make_openai_client
