"""Standalone host for running the web relay without an agent runtime.

Registrations are stored in a :class:`JsonGroupRegistry`; inbound messages
are logged and, in echo mode, answered with ``echo: <content>``.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Dict, Mapping, Optional

from ..channels.web_channel import WebChannel
from ..core.channel.models import NewMessage, RegisteredGroup
from ..infra.config import get_default_config, load_web_channel_config
from ..infra.group_registry import JsonGroupRegistry

logger = logging.getLogger(__name__)


class RelayHost:
    """Implements the host ports on top of a JSON registry."""

    def __init__(self, registry: JsonGroupRegistry, echo: bool = False) -> None:
        self._registry = registry
        self._echo = echo
        self.channel: Optional[WebChannel] = None

    def registered_groups(self) -> Mapping[str, RegisteredGroup]:
        return self._registry.registered_groups()

    def register_group(self, jid: str, group: RegisteredGroup) -> None:
        self._registry.register_group(jid, group)

    def on_chat_metadata(
        self,
        chat_jid: str,
        timestamp: str,
        name: Optional[str] = None,
        channel: Optional[str] = None,
        is_group: Optional[bool] = None,
    ) -> None:
        logger.debug("Chat %s active at %s (name=%s)", chat_jid, timestamp, name)

    async def on_message(self, chat_jid: str, message: NewMessage) -> None:
        logger.info("[%s] %s: %s", chat_jid, message.sender_name, message.content)
        if not self._echo or self.channel is None:
            return
        await self.channel.set_typing(chat_jid, True)
        try:
            await self.channel.send_message(chat_jid, f"echo: {message.content}")
        finally:
            await self.channel.set_typing(chat_jid, False)


def build_relay(config: Dict[str, Any], echo: bool = False) -> WebChannel:
    """Wire registry, host and channel from a config dict."""
    web_config = load_web_channel_config(config)
    registry_path = (config.get("registry") or {}).get("path") or get_default_config()["registry"]["path"]
    host = RelayHost(JsonGroupRegistry(registry_path), echo=echo)
    channel = WebChannel(web_config, host=host)
    host.channel = channel
    return channel


async def run_relay(
    config: Dict[str, Any],
    echo: bool = False,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the relay until SIGINT/SIGTERM (or until *stop_event* is set)."""
    channel = build_relay(config, echo=echo)
    stop = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform / not the main thread

    await channel.connect()
    try:
        await stop.wait()
    finally:
        await channel.disconnect()
