"""Channel contracts and records for the web relay."""

from .jid_resolver import JidResolver
from .models import (
    AckSet,
    FileEntry,
    NewMessage,
    PendingBatch,
    PendingMessage,
    RegisteredGroup,
    Registration,
)
from .ports import ChannelHostPort, ChatMetadataPort
from .protocol import Channel

__all__ = [
    "AckSet",
    "Channel",
    "ChannelHostPort",
    "ChatMetadataPort",
    "FileEntry",
    "JidResolver",
    "NewMessage",
    "PendingBatch",
    "PendingMessage",
    "RegisteredGroup",
    "Registration",
]
