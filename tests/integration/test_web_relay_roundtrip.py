"""
Round trip between WebChannel and a fake web UI backend.

The backend is a small FastAPI app served in-process through
``httpx.ASGITransport``; it queues registrations and messages until they are
acknowledged, like the real UI backend does.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from webrelay.channels.web_channel import WebChannel
from webrelay.core.channel.models import RegisteredGroup
from webrelay.infra.config import WebChannelConfig

SECRET = "internal-secret"


class AckBody(BaseModel):
    messageIds: List[str] = []
    conversationIds: List[str] = []


class DeliverBody(BaseModel):
    id: str
    conversationId: str
    content: str
    createdAt: str


class TypingBody(BaseModel):
    conversationId: str
    isTyping: bool


class FakeWebUI:
    """In-memory stand-in for the chat UI backend."""

    def __init__(self) -> None:
        self.registrations: Dict[str, Dict[str, Any]] = {}
        self.messages: Dict[str, Dict[str, Any]] = {}
        self.deliveries: List[Dict[str, Any]] = []
        self.typing: List[Dict[str, Any]] = []
        self.statuses: List[Dict[str, Any]] = []
        self.app = self._build_app()

    def start_conversation(self, conversation_id: str, name: str) -> None:
        self.registrations[conversation_id] = {
            "conversationId": conversation_id,
            "name": name,
            "folder": f"web-{conversation_id}",
        }

    def post_user_message(self, message_id: str, conversation_id: str, content: str) -> None:
        self.messages[message_id] = {
            "id": message_id,
            "conversationId": conversation_id,
            "senderName": "Alice",
            "content": content,
            "createdAt": "2026-01-01T10:00:00.000Z",
        }

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        async def verify_secret(request: Request) -> None:
            if request.headers.get("authorization") != f"Bearer {SECRET}":
                raise HTTPException(status_code=401, detail="unauthorized")

        @app.get("/api/health")
        async def health():
            return {"ok": True}

        @app.get("/api/internal/pending", dependencies=[Depends(verify_secret)])
        async def pending():
            return {
                "registrations": list(self.registrations.values()),
                "messages": list(self.messages.values()),
            }

        @app.post("/api/internal/ack", dependencies=[Depends(verify_secret)])
        async def ack(body: AckBody):
            for cid in body.conversationIds:
                self.registrations.pop(cid, None)
            for mid in body.messageIds:
                self.messages.pop(mid, None)
            return {"ok": True}

        @app.post("/api/internal/deliver", dependencies=[Depends(verify_secret)])
        async def deliver(body: DeliverBody):
            self.deliveries.append(body.model_dump())
            return {"ok": True}

        @app.post("/api/internal/typing", dependencies=[Depends(verify_secret)])
        async def typing(body: TypingBody):
            self.typing.append(body.model_dump())
            return {"ok": True}

        @app.post("/api/internal/container-status", dependencies=[Depends(verify_secret)])
        async def container_status(request: Request):
            self.statuses.append(await request.json())
            return {"ok": True}

        return app


class RecordingHost:
    def __init__(self) -> None:
        self.groups: Dict[str, RegisteredGroup] = {}
        self.messages: List[Any] = []
        self.channel: Optional[WebChannel] = None

    def registered_groups(self):
        return dict(self.groups)

    def register_group(self, jid, group):
        self.groups[jid] = group

    async def on_message(self, chat_jid, message):
        self.messages.append(message)
        if self.channel is not None:
            await self.channel.set_typing(chat_jid, True)
            await self.channel.send_message(chat_jid, f"echo: {message.content}")
            await self.channel.set_typing(chat_jid, False)


def _make_channel(ui: FakeWebUI, host: RecordingHost, secret: str = SECRET, **kwargs) -> WebChannel:
    config = WebChannelConfig(url="http://webui.test", secret=secret, **kwargs)
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=ui.app))
    channel = WebChannel(config, host=host, client=client)
    host.channel = channel
    return channel


@pytest.mark.asyncio
async def test_new_conversation_and_message_round_trip():
    ui = FakeWebUI()
    ui.start_conversation("conv-abc", "Main")
    ui.post_user_message("m1", "conv-abc", "hello")
    host = RecordingHost()
    channel = _make_channel(ui, host)

    await channel.poll()

    assert host.groups["web:conv-abc"].folder == "web-conv-abc"
    assert [m.content for m in host.messages] == ["hello"]
    assert ui.registrations == {}
    assert ui.messages == {}
    assert ui.deliveries[0]["conversationId"] == "conv-abc"
    assert ui.deliveries[0]["content"] == "echo: hello"
    assert ui.typing == [
        {"conversationId": "conv-abc", "isTyping": True},
        {"conversationId": "conv-abc", "isTyping": False},
    ]

    await channel.poll()

    assert len(host.messages) == 1


@pytest.mark.asyncio
async def test_message_before_registration_waits_for_it():
    ui = FakeWebUI()
    ui.post_user_message("m1", "conv-late", "early bird")
    host = RecordingHost()
    channel = _make_channel(ui, host)

    await channel.poll()

    assert host.messages == []
    assert "m1" in ui.messages

    ui.start_conversation("conv-late", "Late")
    await channel.poll()

    assert [m.id for m in host.messages] == ["m1"]
    assert ui.messages == {}


@pytest.mark.asyncio
async def test_wrong_secret_consumes_nothing():
    ui = FakeWebUI()
    ui.start_conversation("conv-abc", "Main")
    host = RecordingHost()
    channel = _make_channel(ui, host, secret="wrong")

    await channel.poll()
    await channel.send_message("web:conv-abc", "lost reply")

    assert host.groups == {}
    assert "conv-abc" in ui.registrations
    assert ui.deliveries == []


@pytest.mark.asyncio
async def test_container_status_push():
    ui = FakeWebUI()
    channel = _make_channel(ui, RecordingHost())

    await channel.push_container_status("web:conv-abc", "error", error="exit 137")

    assert ui.statuses == [{"conversationId": "conv-abc", "status": "error", "error": "exit 137"}]


@pytest.mark.asyncio
async def test_poll_loop_drains_backend():
    ui = FakeWebUI()
    ui.start_conversation("c1", "One")
    ui.post_user_message("m1", "c1", "first")
    host = RecordingHost()
    channel = _make_channel(ui, host, poll_interval_ms=5)

    await channel.connect()
    try:
        for _ in range(100):
            if not ui.messages and not ui.registrations:
                break
            await asyncio.sleep(0.01)
    finally:
        await channel.disconnect()

    assert [m.id for m in host.messages] == ["m1"]
    assert ui.messages == {}
