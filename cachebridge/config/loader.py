"""
Configuration management using TOML files.

Loads settings from config/cachebridge.toml or pyproject.toml [tool.cachebridge].
Environment variables (and a .env file) override TOML settings.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from dotenv import load_dotenv

from cachebridge.conversation.inference import InferenceConfig, DEFAULT_API_VERSION, DEFAULT_MAX_OUTPUT_TOKENS
from cachebridge.memory.cache import CacheConfig
from cachebridge.storage.store import StoreConfig

# Python 3.11+ has tomllib built-in, otherwise use tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = structlog.get_logger(__name__)


@dataclass
class AppConfig:
    """Complete cachebridge configuration."""
    cache: CacheConfig = field(default_factory=CacheConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    log_level: str = "INFO"

    def validate(self, conversation: bool = True, storage: bool = True) -> None:
        """
        Validate required configuration values.

        Args:
            conversation: Check settings needed by the conversation helper
            storage: Check settings needed by the cache-aside accessor
        """
        errors = []

        if not self.cache.cache_name:
            errors.append(
                "Cache name is required. "
                "Set [cachebridge.cache] cache_name or CACHE_NAME env var"
            )

        if storage:
            if not self.store.account_name:
                errors.append(
                    "Storage account is required. "
                    "Set [cachebridge.store] account_name or STORAGE_ACCOUNT_NAME env var"
                )
            if not self.store.bucket:
                errors.append(
                    "Bucket is required. "
                    "Set [cachebridge.store] bucket or BUCKET_NAME env var"
                )

        if conversation:
            if not self.inference.endpoint:
                errors.append(
                    "Azure OpenAI endpoint is required. "
                    "Set [cachebridge.inference] endpoint or AZURE_OPENAI_ENDPOINT env var"
                )
            if not self.inference.model_id:
                errors.append(
                    "Model id is required. "
                    "Set [cachebridge.inference] model_id or MODEL_ID env var"
                )

        if errors:
            for error in errors:
                logger.error("Configuration error", error=error)
            raise ValueError("Configuration validation failed:\n" + "\n".join(errors))

        logger.info(
            "Configuration validated",
            cache_name=self.cache.cache_name,
            bucket=self.store.bucket or None,
            model_id=self.inference.model_id or None
        )


def _env_or(env_key: str, config_value: Any) -> Any:
    """Get value from environment variable or config, env takes precedence."""
    return os.getenv(env_key, config_value)


def _env_int(env_key: str, config_value: int) -> int:
    raw = os.getenv(env_key)
    if raw is None or raw == "":
        return int(config_value)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{env_key} must be an integer, got {raw!r}") from None


def parse_config(config_dict: Dict[str, Any]) -> AppConfig:
    """
    Build AppConfig from a TOML config dict plus environment overrides.

    Expected format:
    [cachebridge]
    log_level = "INFO"

    [cachebridge.cache]
    host = "your-redis.redis.cache.windows.net"
    port = 6380
    ssl = true
    cache_name = "assistant"
    default_ttl = 300

    [cachebridge.store]
    account_name = "yourstorageaccount"
    bucket = "assistant-data"

    [cachebridge.inference]
    endpoint = "https://your-resource.openai.azure.com"
    model_id = "gpt-4o"
    """
    cache_dict = config_dict.get("cache", {})
    cache_config = CacheConfig(
        host=_env_or("REDIS_HOST", cache_dict.get("host", "")),
        port=_env_int("REDIS_PORT", cache_dict.get("port", 6380)),
        ssl=cache_dict.get("ssl", True),
        database=cache_dict.get("database", 0),
        cache_name=_env_or("CACHE_NAME", cache_dict.get("cache_name", "")),
        default_ttl=_env_int("CACHE_DEFAULT_TTL", cache_dict.get("default_ttl", 300)),
        access_key=_env_or("REDIS_ACCESS_KEY", cache_dict.get("access_key", "")),
    )

    store_dict = config_dict.get("store", {})
    store_config = StoreConfig(
        account_name=_env_or("STORAGE_ACCOUNT_NAME", store_dict.get("account_name", "")),
        bucket=_env_or("BUCKET_NAME", store_dict.get("bucket", "")),
    )

    inference_dict = config_dict.get("inference", {})
    inference_config = InferenceConfig(
        endpoint=_env_or("AZURE_OPENAI_ENDPOINT", inference_dict.get("endpoint", "")),
        model_id=_env_or("MODEL_ID", inference_dict.get("model_id", "")),
        api_version=_env_or(
            "AZURE_OPENAI_API_VERSION",
            inference_dict.get("api_version", DEFAULT_API_VERSION)
        ),
        api_key=_env_or("AZURE_OPENAI_API_KEY", inference_dict.get("api_key", "")),
        max_output_tokens=inference_dict.get("max_output_tokens", DEFAULT_MAX_OUTPUT_TOKENS),
    )

    return AppConfig(
        cache=cache_config,
        store=store_config,
        inference=inference_config,
        log_level=_env_or("LOG_LEVEL", config_dict.get("log_level", "INFO")),
    )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from TOML file and environment.

    Searches in order:
    1. Explicit config_path if provided
    2. config/cachebridge.toml
    3. pyproject.toml [tool.cachebridge] section

    A missing file is not an error: defaults and environment variables apply.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        AppConfig instance with loaded configuration

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
    """
    load_dotenv()

    config_dict: Dict[str, Any] = {}
    search_paths = []

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        search_paths.append(Path(config_path))

    search_paths.extend([
        Path("config/cachebridge.toml"),
        Path("pyproject.toml"),
    ])

    for path in search_paths:
        if not path.exists():
            continue

        with open(path, "rb") as f:
            data = tomllib.load(f)

        # pyproject.toml keeps settings under [tool.cachebridge]
        if path.name == "pyproject.toml":
            config_dict = data.get("tool", {}).get("cachebridge", {})
        else:
            config_dict = data.get("cachebridge", {})

        if config_dict:
            logger.info("Configuration loaded", path=str(path))
            break
        logger.debug("No cachebridge section", path=str(path))

    if not config_dict:
        logger.info("No configuration file found, using environment and defaults")

    return parse_config(config_dict)
