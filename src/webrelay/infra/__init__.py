"""Infrastructure layer for config and host-side persistence."""

from .config import (
    WebChannelConfig,
    get_config,
    get_default_config,
    load_config,
    load_web_channel_config,
    reload_config,
    reset_config_cache,
    save_config,
)
from .group_registry import JsonGroupRegistry

__all__ = [
    "JsonGroupRegistry",
    "WebChannelConfig",
    "get_config",
    "get_default_config",
    "load_config",
    "load_web_channel_config",
    "reload_config",
    "reset_config_cache",
    "save_config",
]
