"""
Configuration management.

Settings come from ``~/.webrelay/config.yaml`` (or an explicit path) and
environment variables; the environment wins.
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.webrelay/config.yaml"
DEFAULT_URL = "http://localhost:3000"
DEFAULT_POLL_INTERVAL_MS = 2000

ENV_URL = "WEB_CHANNEL_URL"
ENV_SECRET = "WEB_CHANNEL_SECRET"
ENV_POLL_INTERVAL_MS = "WEB_CHANNEL_POLL_INTERVAL_MS"


def _resolve_path(config_path: Optional[str]) -> Path:
    return Path(config_path or DEFAULT_CONFIG_PATH).expanduser()


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML config file.

    Args:
        config_path: Path to the config file; ``None`` uses the default path.

    Returns:
        Config dict. Falls back to the defaults when the file is missing or
        cannot be parsed.
    """
    path = _resolve_path(config_path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return get_default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        logger.info("Config loaded: %s", path)
        return config
    except Exception as e:
        logger.error("Failed to load config %s: %s", path, e)
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """Default config dict. The secret is deliberately left empty."""
    return {
        "web_channel": {
            "url": DEFAULT_URL,
            "secret": "",
            "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
            "request_timeout": None,
            "deliver_max_attempts": 1,
        },
        "registry": {
            "path": "~/.webrelay/registered_groups.json",
        },
        "logging": {
            "level": "INFO",
        },
    }


def save_config(config: Dict[str, Any], config_path: Optional[str] = None):
    """
    Write the config file.

    Args:
        config: Config dict.
        config_path: Path to the config file; ``None`` uses the default path.
    """
    path = _resolve_path(config_path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True)
        logger.info("Config saved: %s", path)
    except Exception as e:
        logger.error("Failed to save config %s: %s", path, e)
        raise


# ---------------------------------------------------------------------------
# Module-level cached config
# ---------------------------------------------------------------------------

_cached_config: Optional[Dict[str, Any]] = None
_cached_config_path: Optional[str] = None


def get_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return a cached config dict, loading from disk on first call.

    If *config_path* differs from the previously cached path the config is
    reloaded automatically.
    """
    global _cached_config, _cached_config_path
    if _cached_config is None or config_path != _cached_config_path:
        _cached_config = load_config(config_path)
        _cached_config_path = config_path
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Force-reload config from disk and update the cache."""
    global _cached_config, _cached_config_path
    _cached_config = load_config(config_path)
    _cached_config_path = config_path
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (mainly for tests)."""
    global _cached_config, _cached_config_path
    _cached_config = None
    _cached_config_path = None


# ---------------------------------------------------------------------------
# Web channel settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WebChannelConfig:
    """Resolved settings for the web relay."""

    url: str = DEFAULT_URL
    secret: str = ""
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    request_timeout: Optional[float] = None  # seconds; None waits on the transport
    deliver_max_attempts: int = 1

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0


def _as_int(value: Any, key: str, minimum: int) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if result < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {result}")
    return result


def load_web_channel_config(
    config: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> WebChannelConfig:
    """Merge defaults, the ``web_channel`` config section and the environment.

    Args:
        config: Full config dict (as returned by :func:`get_config`); ``None``
            uses the cached config.
        env: Environment mapping; ``None`` uses ``os.environ``.

    Raises:
        ValueError: No secret configured, or a numeric setting is invalid.
    """
    if config is None:
        config = get_config()
    if env is None:
        env = os.environ

    section = copy.deepcopy(get_default_config()["web_channel"])
    section.update((config.get("web_channel") or {}) if isinstance(config, Mapping) else {})

    if env.get(ENV_URL):
        section["url"] = env[ENV_URL]
    if env.get(ENV_SECRET):
        section["secret"] = env[ENV_SECRET]
    if env.get(ENV_POLL_INTERVAL_MS):
        section["poll_interval_ms"] = env[ENV_POLL_INTERVAL_MS]

    secret = str(section.get("secret") or "").strip()
    if not secret:
        raise ValueError(
            f"{ENV_SECRET} is required: set it in the environment "
            f"or as web_channel.secret in the config file"
        )

    timeout = section.get("request_timeout")
    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            raise ValueError(f"request_timeout must be a number, got {timeout!r}")

    return WebChannelConfig(
        url=str(section.get("url") or DEFAULT_URL).rstrip("/"),
        secret=secret,
        poll_interval_ms=_as_int(section.get("poll_interval_ms"), "poll_interval_ms", 1),
        request_timeout=timeout,
        deliver_max_attempts=_as_int(
            section.get("deliver_max_attempts"), "deliver_max_attempts", 1
        ),
    )
