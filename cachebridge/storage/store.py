"""
ADLS object store.

Uses Azure Data Lake Storage Gen2 as the durable store behind the cache.
Authentication via DefaultAzureCredential (no API keys). A "bucket" is an
ADLS file system; keys are file paths inside it.
"""

from typing import Protocol, Set
from dataclasses import dataclass

import structlog
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError

from cachebridge.exceptions import ObjectNotFoundError, StoreError

logger = structlog.get_logger(__name__)

# POSIX ACL granting read to everyone outside the owning user/group
PUBLIC_READ_ACL = "user::rw-,group::r--,other::r--"


@dataclass
class StoreConfig:
    """ADLS object store configuration."""
    account_name: str = ""
    bucket: str = ""


class ObjectStore(Protocol):
    """Durable key/bytes store."""

    async def get(self, bucket: str, key: str) -> bytes: ...

    async def put(self, bucket: str, key: str, body: bytes, public_read: bool = False) -> None: ...

    async def close(self) -> None: ...


class ADLSObjectStore:
    """
    Azure Data Lake Storage Gen2 object store.

    get() raises ObjectNotFoundError for missing paths and StoreError for
    anything else; put() raises StoreError.
    """

    def __init__(self, config: StoreConfig):
        """
        Initialize ADLS object store.

        Args:
            config: StoreConfig with storage settings
        """
        if not config.account_name:
            raise ValueError("ADLSObjectStore requires an account_name")
        self.config = config
        self._client = None
        self._credential = None
        self._known_buckets: Set[str] = set()

    def _service_client(self):
        """Return the service client, creating it on first use."""
        if self._client is None:
            from azure.storage.filedatalake.aio import DataLakeServiceClient
            from azure.identity.aio import DefaultAzureCredential

            self._credential = DefaultAzureCredential()
            account_url = f"https://{self.config.account_name}.dfs.core.windows.net"
            self._client = DataLakeServiceClient(
                account_url=account_url,
                credential=self._credential
            )
            logger.info("ADLS object store connected", account=self.config.account_name)
        return self._client

    async def _ensure_bucket(self, bucket: str):
        """Return the file system client, creating the file system if needed."""
        file_system = self._service_client().get_file_system_client(bucket)
        if bucket in self._known_buckets:
            return file_system

        try:
            await file_system.get_file_system_properties()
        except ResourceNotFoundError:
            logger.info("Creating ADLS file system", bucket=bucket)
            try:
                await file_system.create_file_system()
            except ResourceExistsError:
                pass
        self._known_buckets.add(bucket)
        return file_system

    async def get(self, bucket: str, key: str) -> bytes:
        """
        Download an object.

        Args:
            bucket: File system name
            key: Full path, including prefix

        Returns:
            Raw object bytes

        Raises:
            ObjectNotFoundError: The path does not exist
            StoreError: Any other failure
        """
        try:
            file_system = self._service_client().get_file_system_client(bucket)
            file_client = file_system.get_file_client(key)
            download = await file_client.download_file()
            content = await download.readall()
        except ResourceNotFoundError as e:
            raise ObjectNotFoundError(key, cause=e) from e
        except Exception as e:
            raise StoreError(key, f"ADLS download failed: {e}", cause=e) from e

        logger.debug("ADLS load success", bucket=bucket, key=key, size=len(content))
        return content

    async def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        public_read: bool = False
    ) -> None:
        """
        Create or overwrite an object.

        Args:
            bucket: File system name
            key: Full path, including prefix
            body: Bytes to store
            public_read: Grant read access to everyone via the file ACL
        """
        try:
            file_system = await self._ensure_bucket(bucket)
            file_client = file_system.get_file_client(key)
            await file_client.upload_data(body, overwrite=True)
        except Exception as e:
            raise StoreError(key, f"ADLS upload failed: {e}", cause=e) from e

        if public_read:
            try:
                await file_client.set_access_control(acl=PUBLIC_READ_ACL)
            except Exception as e:
                logger.error("ADLS public read ACL failed", bucket=bucket, key=key, error=str(e))
                raise StoreError(
                    key,
                    f"ADLS upload succeeded but setting public read ACL failed: {e}",
                    cause=e
                ) from e

        logger.debug("ADLS save success", bucket=bucket, key=key, public_read=public_read)

    async def close(self) -> None:
        """Close ADLS connection."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
        logger.debug("ADLS object store closed")
