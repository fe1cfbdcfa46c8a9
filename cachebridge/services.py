"""
Service wiring.

Backend clients are built once from configuration and handed to the
orchestrators. Host applications create one ServiceContainer at startup and
close it on shutdown.

Example:
    services = ServiceContainer.from_config(load_config())
    answer = await chat(services, "What is the capital of France?")
    await save(services, "path/to/file.json", {"foo": "bar"}, ttl=60)
    value = await load(services, "path/to/file.json", transform="json")
    await services.close()
"""

from typing import Any, Optional, Union

import structlog

from cachebridge.config import AppConfig
from cachebridge.conversation.inference import AzureOpenAIInference, InferenceService
from cachebridge.conversation.orchestrator import ConversationOrchestrator
from cachebridge.memory.cache import CacheService, InMemoryCache, RedisCache
from cachebridge.storage.accessor import CacheAsideAccessor, LoadResult, TransformType
from cachebridge.storage.store import ADLSObjectStore, ObjectStore

logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Long-lived backend clients plus the configuration they were built from."""

    def __init__(
        self,
        config: AppConfig,
        cache: CacheService,
        store: Optional[ObjectStore] = None,
        inference: Optional[InferenceService] = None,
    ):
        self.config = config
        self.cache = cache
        self.store = store
        self.inference = inference

    @classmethod
    def from_config(cls, config: AppConfig) -> "ServiceContainer":
        """
        Build clients for every backend the configuration names.

        Without a Redis host the in-memory cache is used. The store and the
        inference client are only built when their settings are present.
        """
        if config.cache.host:
            cache: CacheService = RedisCache(config.cache)
        else:
            logger.warning("No Redis host configured, using in-memory cache")
            cache = InMemoryCache(default_ttl=config.cache.default_ttl)

        store = ADLSObjectStore(config.store) if config.store.account_name else None
        inference = AzureOpenAIInference(config.inference) if config.inference.endpoint else None

        logger.info(
            "ServiceContainer initialized",
            redis=bool(config.cache.host),
            store=store is not None,
            inference=inference is not None
        )
        return cls(config, cache, store=store, inference=inference)

    def conversation(self) -> ConversationOrchestrator:
        if self.inference is None:
            raise RuntimeError("Inference is not configured. Set AZURE_OPENAI_ENDPOINT.")
        return ConversationOrchestrator(
            cache=self.cache,
            inference=self.inference,
            cache_name=self.config.cache.cache_name,
            model_id=self.config.inference.model_id,
            max_output_tokens=self.config.inference.max_output_tokens,
        )

    def accessor(self) -> CacheAsideAccessor:
        if self.store is None:
            raise RuntimeError("Object store is not configured. Set STORAGE_ACCOUNT_NAME.")
        return CacheAsideAccessor(
            cache=self.cache,
            store=self.store,
            cache_name=self.config.cache.cache_name,
            bucket=self.config.store.bucket,
        )

    async def close(self) -> None:
        """Close every client, continuing past individual failures."""
        for name in ("inference", "store", "cache"):
            service = getattr(self, name)
            if service is None:
                continue
            try:
                await service.close()
                logger.debug("Closed service", service_name=name)
            except Exception as e:
                logger.warning("Failed to close service", service_name=name, error=str(e))
        logger.info("ServiceContainer closed")


async def chat(
    services: ServiceContainer,
    message: str,
    chat_id: Optional[str] = None,
    system_message: Optional[str] = None,
) -> str:
    """
    Prompt the model. History is kept in the cache when chat_id is given.

    Example:
        await chat(services, "What is the capital of France?")
        await chat(services, "Then what happened?", chat_id="abc")
    """
    return await services.conversation().converse(
        message, chat_id=chat_id, system_message=system_message
    )


async def load(
    services: ServiceContainer,
    key: str,
    transform: Union[TransformType, str] = TransformType.STRING,
) -> LoadResult:
    """Load a value from the cache, falling back to the object store."""
    return await services.accessor().load(key, transform=transform)


async def save(
    services: ServiceContainer,
    key: str,
    value: Any,
    ttl: Optional[int] = None,
    is_public: bool = False,
) -> None:
    """Save a value to the object store and the cache."""
    await services.accessor().save(key, value, ttl=ttl, is_public=is_public)
