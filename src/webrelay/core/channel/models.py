"""Web relay records: registrations, pending messages, acks and host-facing shapes.

Wire payloads use the camelCase field names of the web UI backend; the
dataclasses here carry snake_case attributes and convert at the edges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .jid_resolver import JidResolver

DEFAULT_SENDER_NAME = "User"

CONTAINER_STATUSES = ("running", "idle", "error")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Registration:
    """A conversation the web UI has created and wants the host to track."""

    conversation_id: str
    name: str
    folder: str  # opaque, passed through untouched
    requires_trigger: bool = False
    trigger: str = ""

    @property
    def jid(self) -> str:
        return JidResolver.to_jid(self.conversation_id)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Registration":
        conversation_id = str(data.get("conversationId") or "")
        if not conversation_id:
            raise ValueError("registration without conversationId")
        return cls(
            conversation_id=conversation_id,
            name=str(data.get("name") or ""),
            folder=str(data.get("folder") or ""),
            requires_trigger=bool(data.get("requiresTrigger", False)),
            trigger=str(data.get("trigger") or ""),
        )


@dataclass
class RegisteredGroup:
    """The host's durable record of a tracked conversation."""

    name: str
    folder: str
    trigger: str = ""
    requires_trigger: bool = False
    added_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_registration(cls, registration: Registration) -> "RegisteredGroup":
        return cls(
            name=registration.name,
            folder=registration.folder,
            trigger=registration.trigger,
            requires_trigger=registration.requires_trigger,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "folder": self.folder,
            "trigger": self.trigger,
            "requiresTrigger": self.requires_trigger,
            "addedAt": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegisteredGroup":
        return cls(
            name=str(data.get("name") or ""),
            folder=str(data.get("folder") or ""),
            trigger=str(data.get("trigger") or ""),
            requires_trigger=bool(data.get("requiresTrigger", False)),
            added_at=str(data.get("addedAt") or utc_now_iso()),
        )


@dataclass
class NewMessage:
    """Canonical inbound message handed to the host."""

    id: str
    chat_jid: str
    sender: str
    sender_name: str
    content: str
    timestamp: str
    is_from_me: bool = False
    is_bot_message: bool = False


@dataclass
class PendingMessage:
    """A user message queued by the web UI, as received from ``/pending``."""

    id: str
    conversation_id: str
    content: str
    created_at: str
    sender_name: Optional[str] = None

    @property
    def jid(self) -> str:
        return JidResolver.to_jid(self.conversation_id)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "PendingMessage":
        message_id = str(data.get("id") or "")
        conversation_id = str(data.get("conversationId") or "")
        if not message_id or not conversation_id:
            raise ValueError("message without id or conversationId")
        return cls(
            id=message_id,
            conversation_id=conversation_id,
            content=str(data.get("content") or ""),
            created_at=str(data.get("createdAt") or ""),
            sender_name=data.get("senderName") or None,
        )

    def to_new_message(self) -> NewMessage:
        jid = self.jid
        return NewMessage(
            id=self.id,
            chat_jid=jid,
            sender=f"user@{jid}",
            sender_name=self.sender_name or DEFAULT_SENDER_NAME,
            content=self.content,
            timestamp=self.created_at,
        )


@dataclass
class PendingBatch:
    """One ``/pending`` response.

    Entries that cannot be parsed are collected in ``skipped`` so the caller
    can log them; they are never acknowledged.
    """

    registrations: List[Registration] = field(default_factory=list)
    messages: List[PendingMessage] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> "PendingBatch":
        if not isinstance(data, dict):
            raise ValueError(f"pending payload is not an object: {type(data).__name__}")
        batch = cls()
        for raw in data.get("registrations") or []:
            try:
                batch.registrations.append(Registration.from_payload(raw))
            except (ValueError, AttributeError):
                batch.skipped.append({"kind": "registration", "raw": raw})
        for raw in data.get("messages") or []:
            try:
                batch.messages.append(PendingMessage.from_payload(raw))
            except (ValueError, AttributeError):
                batch.skipped.append({"kind": "message", "raw": raw})
        return batch


@dataclass
class AckSet:
    """Items consumed during one poll cycle, in first-seen order."""

    conversation_ids: List[str] = field(default_factory=list)
    message_ids: List[str] = field(default_factory=list)

    def add_conversation(self, conversation_id: str) -> None:
        if conversation_id not in self.conversation_ids:
            self.conversation_ids.append(conversation_id)

    def add_message(self, message_id: str) -> None:
        if message_id not in self.message_ids:
            self.message_ids.append(message_id)

    def is_empty(self) -> bool:
        return not self.conversation_ids and not self.message_ids

    def to_payload(self) -> Dict[str, List[str]]:
        return {
            "messageIds": list(self.message_ids),
            "conversationIds": list(self.conversation_ids),
        }


@dataclass
class FileEntry:
    """One node of a workspace tree built by the host."""

    name: str
    type: str  # "file" | "dir"
    children: Optional[List["FileEntry"]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.children is not None:
            data["children"] = [c.to_dict() for c in self.children]
        return data


TreeNode = Union[FileEntry, Dict[str, Any]]


def serialize_tree(tree: List[TreeNode]) -> List[Dict[str, Any]]:
    """Serialize a workspace tree whose nodes are FileEntry or plain dicts."""
    return [node.to_dict() if isinstance(node, FileEntry) else dict(node) for node in tree]
