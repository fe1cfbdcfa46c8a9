"""Configuration loading for cachebridge."""

from .loader import AppConfig, load_config, parse_config

__all__ = [
    "AppConfig",
    "load_config",
    "parse_config",
]
