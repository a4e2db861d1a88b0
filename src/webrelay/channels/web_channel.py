"""WebChannel: polling relay between the web chat UI backend and the agent host.

Inbound traffic is pulled: every ``poll_interval_ms`` the channel fetches the
pending registrations and user messages, registers new conversations with
the host, forwards messages, then acknowledges what it consumed in one
batch. Outbound traffic (replies, typing, container status, workspace
snapshots) is pushed with direct HTTP calls when the host asks for it.

Delivery is at-least-once: anything not acknowledged is served again on the
next cycle. No error crosses into the host except a missing secret at
construction time.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import Any, Dict, List, Optional, Set

import httpx

from ..core.channel.jid_resolver import JidResolver
from ..core.channel.models import (
    CONTAINER_STATUSES,
    AckSet,
    PendingBatch,
    RegisteredGroup,
    TreeNode,
    serialize_tree,
    utc_now_iso,
)
from ..core.channel.ports import ChannelHostPort, ChatMetadataPort
from ..infra.config import ENV_SECRET, WebChannelConfig

logger = logging.getLogger(__name__)

HEALTH_PATH = "/api/health"
PENDING_PATH = "/api/internal/pending"
ACK_PATH = "/api/internal/ack"
DELIVER_PATH = "/api/internal/deliver"
TYPING_PATH = "/api/internal/typing"
CONTAINER_STATUS_PATH = "/api/internal/container-status"
WORKSPACE_SNAPSHOT_PATH = "/api/internal/workspace-snapshot"


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class WebChannel:
    """Web UI channel (short-polling, batch acknowledgement).

    Usage::

        channel = WebChannel(load_web_channel_config(), host=host)
        await channel.connect()
        ...
        await channel.send_message("web:conv-abc", "Hello!")
        ...
        await channel.disconnect()

    Pass ``client`` to reuse an existing ``httpx.AsyncClient``; the channel
    then never closes it.
    """

    name = "web"

    # Base delay between deliver attempts; doubles each attempt.
    RETRY_BACKOFF_SECONDS = 1.0
    # Upper bound disconnect() waits for an in-flight poll.
    DISCONNECT_GRACE_SECONDS = 5.0

    def __init__(
        self,
        config: WebChannelConfig,
        host: ChannelHostPort,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not config.secret:
            raise ValueError(f"WebChannel requires a shared secret ({ENV_SECRET})")
        self._config = config
        self._base_url = config.url.rstrip("/")
        self._host = host
        self._client = client
        self._owns_client = client is None

        self._connected = False
        self._poll_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Probe the backend (best effort) and start the poll loop."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        await self.probe_health()
        self._connected = True
        stop = asyncio.Event()
        self._stop_event = stop
        self._poll_task = asyncio.create_task(
            self._poll_loop(stop), name="web-channel-poll"
        )
        logger.info(
            "WebChannel started polling %s every %d ms",
            self._base_url, self._config.poll_interval_ms,
        )

    async def disconnect(self) -> None:
        """Stop scheduling polls and release the HTTP client.

        An in-flight poll is allowed to finish; no further cycle starts.
        Waiting for it is bounded by ``DISCONNECT_GRACE_SECONDS``; a poll
        that outlives the wait closes the client itself when it settles.
        """
        was_connected = self._connected
        self._connected = False
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            await self._close_client()
        elif task is not asyncio.current_task():
            done, _ = await asyncio.wait({task}, timeout=self.DISCONNECT_GRACE_SECONDS)
            if done:
                await self._close_client()
            else:
                logger.warning(
                    "WebChannel: poll still in flight after %.1fs, leaving it to finish",
                    self.DISCONNECT_GRACE_SECONDS,
                )
        if was_connected:
            logger.info("WebChannel stopped")

    def is_connected(self) -> bool:
        return self._connected

    def owns_jid(self, jid: str) -> bool:
        return JidResolver.owns(jid)

    async def probe_health(self) -> bool:
        """GET the health endpoint. Returns False (and logs) instead of raising."""
        try:
            data = await self._get_json(HEALTH_PATH)
        except Exception as exc:
            logger.warning("WebChannel: web UI not reachable at %s: %s", self._base_url, exc)
            return False
        if isinstance(data, dict) and data.get("ok") is False:
            logger.warning("WebChannel: web UI at %s reports unhealthy: %s", self._base_url, data)
            return False
        return True

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_message(self, jid: str, text: str) -> None:
        """Deliver an agent reply. Failures are logged, never raised.

        Retries reuse the same delivery id so the backend can deduplicate.
        """
        body = {
            "id": str(uuid.uuid4()),
            "conversationId": JidResolver.to_conversation_id(jid),
            "content": text,
            "createdAt": utc_now_iso(),
        }
        max_attempts = self._config.deliver_max_attempts
        for attempt in range(max_attempts):
            try:
                await self._post_json(DELIVER_PATH, body)
                return
            except Exception as exc:
                logger.warning(
                    "WebChannel: deliver failed for %s (attempt %d/%d): %s",
                    jid, attempt + 1, max_attempts, exc,
                )
            if attempt < max_attempts - 1:
                await asyncio.sleep(self.RETRY_BACKOFF_SECONDS * 2 ** attempt)

    async def set_typing(self, jid: str, is_typing: bool) -> None:
        await self._post_best_effort(
            TYPING_PATH,
            {"conversationId": JidResolver.to_conversation_id(jid), "isTyping": is_typing},
            "set typing",
            jid,
        )

    async def push_container_status(
        self, jid: str, status: str, error: Optional[str] = None
    ) -> None:
        """Push the agent container state (``running`` / ``idle`` / ``error``)."""
        if not self.owns_jid(jid):
            return
        if status not in CONTAINER_STATUSES:
            logger.warning("WebChannel: unknown container status %r for %s", status, jid)
            return
        body: Dict[str, Any] = {
            "conversationId": JidResolver.to_conversation_id(jid),
            "status": status,
        }
        if error:
            body["error"] = error
        await self._post_best_effort(CONTAINER_STATUS_PATH, body, "push container status", jid)

    async def push_workspace_snapshot(self, jid: str, tree: List[TreeNode]) -> None:
        """Push a host-built file tree of the conversation's workspace."""
        if not self.owns_jid(jid):
            return
        await self._post_best_effort(
            WORKSPACE_SNAPSHOT_PATH,
            {"conversationId": JidResolver.to_conversation_id(jid), "tree": serialize_tree(tree)},
            "push workspace snapshot",
            jid,
        )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll_loop(self, stop: asyncio.Event) -> None:
        # The next wait starts only after the previous cycle settled.
        interval = self._config.poll_interval
        try:
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
                if stop.is_set():
                    break
                await self.poll()
        finally:
            # Disconnected and not replaced by a newer loop: nobody else closes the client.
            if self._poll_task is None and not self._connected:
                await self._close_client()
        logger.debug("WebChannel poll loop exited")

    async def poll(self) -> None:
        """Run one fetch-register-forward-acknowledge cycle. Never raises."""
        try:
            batch = PendingBatch.from_payload(await self._get_json(PENDING_PATH))
        except Exception as exc:
            logger.warning("WebChannel: failed to fetch pending batch: %s", exc)
            return

        for entry in batch.skipped:
            logger.warning("WebChannel: skipping malformed %s: %r", entry["kind"], entry["raw"])

        try:
            acks = await self._process_batch(batch)
        except Exception:
            logger.exception("WebChannel: poll cycle failed")
            return

        if acks.is_empty():
            return
        try:
            await self._post_json(ACK_PATH, acks.to_payload())
        except Exception as exc:
            logger.warning(
                "WebChannel: ack failed, %d conversation(s) and %d message(s) will be redelivered: %s",
                len(acks.conversation_ids), len(acks.message_ids), exc,
            )
            return
        logger.debug(
            "WebChannel: acked %d conversation(s), %d message(s)",
            len(acks.conversation_ids), len(acks.message_ids),
        )

    async def _process_batch(self, batch: PendingBatch) -> AckSet:
        acks = AckSet()

        known = self._host.registered_groups()
        registered_now: Set[str] = set()
        for registration in batch.registrations:
            jid = registration.jid
            if jid not in known and jid not in registered_now:
                group = RegisteredGroup.from_registration(registration)
                await self._report_metadata(
                    jid, group.added_at, name=registration.name, channel=self.name, is_group=False,
                )
                try:
                    await _maybe_await(self._host.register_group(jid, group))
                except Exception:
                    logger.exception("WebChannel: register_group failed for %s", jid)
                    continue
                registered_now.add(jid)
                logger.info("WebChannel: registered conversation %s (%s)", jid, registration.name)
            # Known conversations are acked too so the backend stops resending them.
            acks.add_conversation(registration.conversation_id)

        # Re-read: registrations above may have added jids used by this batch's messages.
        current = self._host.registered_groups()
        for pending in batch.messages:
            jid = pending.jid
            if jid not in current:
                logger.warning(
                    "WebChannel: message %s for unregistered conversation %s left pending",
                    pending.id, jid,
                )
                continue
            message = pending.to_new_message()
            await self._report_metadata(jid, message.timestamp)
            try:
                await _maybe_await(self._host.on_message(jid, message))
            except Exception:
                logger.exception("WebChannel: on_message failed for %s (message %s)", jid, pending.id)
                continue
            acks.add_message(pending.id)

        return acks

    async def _report_metadata(self, jid: str, timestamp: str, **kwargs: Any) -> None:
        if not isinstance(self._host, ChatMetadataPort):
            return
        try:
            await _maybe_await(self._host.on_chat_metadata(jid, timestamp, **kwargs))
        except Exception:
            logger.exception("WebChannel: on_chat_metadata failed for %s", jid)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout)
            )
            self._owns_client = True
        return self._client

    async def _close_client(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._config.secret}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _get_json(self, path: str) -> Any:
        resp = await self._get_client().get(f"{self._base_url}{path}", headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    async def _post_json(self, path: str, body: Dict[str, Any]) -> None:
        resp = await self._get_client().post(
            f"{self._base_url}{path}", json=body, headers=self._headers(json_body=True),
        )
        resp.raise_for_status()

    async def _post_best_effort(self, path: str, body: Dict[str, Any], action: str, jid: str) -> bool:
        try:
            await self._post_json(path, body)
            return True
        except Exception as exc:
            logger.warning("WebChannel: failed to %s for %s: %s", action, jid, exc)
            return False
