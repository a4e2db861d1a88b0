"""Web jid <-> conversation id mapping."""

from __future__ import annotations


class JidResolver:
    """Maps web UI conversation ids to namespaced jids and back.

    Format: ``web:{conversation_id}``
    Example: ``web:conv-abc``

    The web relay owns exactly the ``web:`` namespace; jids carrying any
    other prefix belong to other channels.
    """

    PREFIX = "web:"

    @classmethod
    def to_jid(cls, conversation_id: str) -> str:
        """Build the jid for a conversation, e.g. ``"conv-abc"`` -> ``"web:conv-abc"``."""
        return f"{cls.PREFIX}{conversation_id}"

    @classmethod
    def to_conversation_id(cls, jid: str) -> str:
        """Strip the ``web:`` prefix.

        A jid without the prefix is returned unchanged; callers route by
        :meth:`owns` first.
        """
        if jid.startswith(cls.PREFIX):
            return jid[len(cls.PREFIX):]
        return jid

    @classmethod
    def owns(cls, jid: str) -> bool:
        return jid.startswith(cls.PREFIX)
