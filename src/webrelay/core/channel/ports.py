"""Protocol interfaces the web relay requires from its host.

The host owns the registered-groups registry and the agent runtime; the
relay reads the registry through :class:`ChannelHostPort` and asks for
mutations only via ``register_group``. Callbacks may be plain functions or
coroutine functions.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .models import NewMessage, RegisteredGroup


@runtime_checkable
class ChannelHostPort(Protocol):
    """Structural interface WebChannel expects from its host."""

    def registered_groups(self) -> Mapping[str, RegisteredGroup]: ...

    def register_group(self, jid: str, group: RegisteredGroup) -> Any: ...

    def on_message(self, chat_jid: str, message: NewMessage) -> Any: ...


@runtime_checkable
class ChatMetadataPort(Protocol):
    """Optional host capability: record chat metadata (last activity, name)."""

    def on_chat_metadata(
        self,
        chat_jid: str,
        timestamp: str,
        name: Optional[str] = None,
        channel: Optional[str] = None,
        is_group: Optional[bool] = None,
    ) -> Any: ...
