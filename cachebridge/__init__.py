"""cachebridge - LLM conversations and cache-aside object storage on Azure."""

from cachebridge.config import AppConfig, load_config
from cachebridge.conversation import ConversationOrchestrator, Turn
from cachebridge.exceptions import CacheBridgeError, InferenceError, ObjectNotFoundError, StoreError
from cachebridge.logging_config import configure_logging
from cachebridge.services import ServiceContainer, chat, load, save
from cachebridge.storage import CacheAsideAccessor, TransformType

__all__ = [
    "AppConfig",
    "load_config",
    "ConversationOrchestrator",
    "Turn",
    "CacheBridgeError",
    "InferenceError",
    "ObjectNotFoundError",
    "StoreError",
    "configure_logging",
    "ServiceContainer",
    "chat",
    "load",
    "save",
    "CacheAsideAccessor",
    "TransformType",
]
