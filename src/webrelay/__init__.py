"""
webrelay - polling relay between the web chat UI and the agent host.

Pulls new conversations and user messages from the web UI backend, hands
them to the host, and pushes replies, typing and status back.
"""

__version__ = "0.1.0"

from .channels.web_channel import WebChannel
from .core.channel import (
    Channel,
    ChannelHostPort,
    ChatMetadataPort,
    FileEntry,
    JidResolver,
    NewMessage,
    RegisteredGroup,
)
from .infra.config import WebChannelConfig, load_web_channel_config
from .infra.group_registry import JsonGroupRegistry

__all__ = [
    "Channel",
    "ChannelHostPort",
    "ChatMetadataPort",
    "FileEntry",
    "JidResolver",
    "JsonGroupRegistry",
    "NewMessage",
    "RegisteredGroup",
    "WebChannel",
    "WebChannelConfig",
    "load_web_channel_config",
]
