"""Channel protocol definition."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Channel(Protocol):
    """Capability set every channel offers the host (web, telegram, ...).

    The host routes outbound calls by :meth:`owns_jid` and treats all
    channels polymorphically through this interface.
    """

    @property
    def name(self) -> str:
        """Channel identifier, e.g. ``"web"``."""
        ...

    async def connect(self) -> None:
        """Start the channel (reachability check, start polling, ...)."""
        ...

    async def disconnect(self) -> None:
        """Stop the channel and release its resources."""
        ...

    def is_connected(self) -> bool:
        ...

    def owns_jid(self, jid: str) -> bool:
        """Whether *jid* belongs to this channel's namespace."""
        ...

    async def send_message(self, jid: str, text: str) -> None:
        """Deliver an agent reply to the conversation behind *jid*."""
        ...

    async def set_typing(self, jid: str, is_typing: bool) -> None:
        ...
