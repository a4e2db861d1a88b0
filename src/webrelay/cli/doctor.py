"""
Doctor checks for the web relay.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional
from urllib.parse import urlparse

import httpx

from ..channels.web_channel import HEALTH_PATH, PENDING_PATH
from ..infra.config import (
    DEFAULT_CONFIG_PATH,
    ENV_SECRET,
    WebChannelConfig,
    load_config,
    load_web_channel_config,
)


@dataclass(frozen=True)
class DoctorItem:
    """A single doctor finding."""

    level: str  # "OK" | "WARN" | "ERROR"
    title: str
    details: str
    hint: Optional[str] = None


def check_url(url: str) -> DoctorItem:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return DoctorItem(
            level="ERROR",
            title="Web UI URL",
            details=f"Not an http(s) URL: {url!r}",
            hint="Set WEB_CHANNEL_URL, e.g. http://localhost:3000",
        )
    return DoctorItem(level="OK", title="Web UI URL", details=url)


def check_health(client: httpx.Client, config: WebChannelConfig) -> DoctorItem:
    url = f"{config.url}{HEALTH_PATH}"
    try:
        resp = client.get(url, headers={"Authorization": f"Bearer {config.secret}"})
        resp.raise_for_status()
        data = resp.json()
    except Exception as e:
        return DoctorItem(
            level="ERROR",
            title="Web UI health",
            details=f"{url} unreachable: {e}",
            hint="Start the web UI backend or fix WEB_CHANNEL_URL.",
        )
    if isinstance(data, dict) and data.get("ok") is False:
        return DoctorItem(level="WARN", title="Web UI health", details=f"{url} reports unhealthy: {data}")
    return DoctorItem(level="OK", title="Web UI health", details=f"{url} is up")


def check_credential(client: httpx.Client, config: WebChannelConfig) -> DoctorItem:
    """GET the pending endpoint; reading it does not consume anything."""
    url = f"{config.url}{PENDING_PATH}"
    try:
        resp = client.get(url, headers={"Authorization": f"Bearer {config.secret}"})
    except Exception as e:
        return DoctorItem(level="ERROR", title="Internal API", details=f"{url} unreachable: {e}")
    if resp.status_code in (401, 403):
        return DoctorItem(
            level="ERROR",
            title="Internal API",
            details=f"Credential rejected ({resp.status_code})",
            hint=f"{ENV_SECRET} must match the web UI backend's internal secret.",
        )
    if not resp.is_success:
        return DoctorItem(
            level="WARN",
            title="Internal API",
            details=f"{url} returned {resp.status_code}",
        )
    return DoctorItem(level="OK", title="Internal API", details="Credential accepted")


def collect_doctor_report(
    *,
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    client: Optional[httpx.Client] = None,
) -> List[DoctorItem]:
    """Collect doctor report items."""
    items: List[DoctorItem] = []
    env = os.environ if env is None else env

    path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
    if path.exists():
        items.append(DoctorItem(level="OK", title="Config file", details=f"Found config: {path}"))
    else:
        items.append(
            DoctorItem(
                level="WARN",
                title="Config file",
                details=f"Config not found: {path}",
                hint="Run: webrelay config --init (environment variables still apply).",
            )
        )

    try:
        web_config = load_web_channel_config(load_config(config_path), env=env)
    except ValueError as e:
        items.append(DoctorItem(level="ERROR", title="Web channel config", details=str(e)))
        return items
    items.append(
        DoctorItem(
            level="OK",
            title="Web channel config",
            details=f"Secret configured, polling every {web_config.poll_interval_ms} ms",
        )
    )

    url_item = check_url(web_config.url)
    items.append(url_item)
    if url_item.level == "ERROR":
        return items

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=httpx.Timeout(10.0))
    try:
        items.append(check_health(client, web_config))
        items.append(check_credential(client, web_config))
    finally:
        if owns_client:
            client.close()

    return items
