"""
HTTP bridge transport.

Talks to a messaging gateway sidecar (a process that holds the actual chat
session, QR pairing included) over a small JSON API:

    GET  /state                      -> {"state": "connected" | "waiting_for_qr" | ...}
    GET  /chats                      -> {"chats": [{"address", "name", "isGroup"}]}
    GET  /messages?since=<cursor>    -> {"messages": [...], "cursor": <int>}
    POST /send {"address", "text"}   -> {"ok": true}

Inbound messages are polled; each message object carries
address, senderId, senderName, text, isGroup, groupName, senderIsAdmin.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from orderbot.core.json_utils import dumps
from orderbot.errors import TransportError
from orderbot.transport.base import BotStatus, InboundHandler, InboundMessage, StateHandler

log = logging.getLogger("orderbot")


@dataclass
class GatewayConfig:
    """Configuration for GatewayTransport."""
    base_url: str = "http://127.0.0.1:3001"
    token: Optional[str] = None
    poll_interval_sec: float = 2.0
    http_timeout: float = 10.0
    max_backoff_sec: float = 60.0


def parse_inbound(raw: Dict[str, Any]) -> InboundMessage:
    return InboundMessage(
        address=str(raw.get("address", "")),
        sender_id=str(raw.get("senderId", "")),
        sender_display_name=str(raw.get("senderName") or raw.get("senderId", "")),
        text=str(raw.get("text", "")),
        is_group=bool(raw.get("isGroup", False)),
        group_name=str(raw.get("groupName") or ""),
        sender_is_admin=bool(raw.get("senderIsAdmin", False)),
    )


class GatewayTransport:
    """
    Transport backed by an HTTP messaging gateway.

    Usage:
        transport = GatewayTransport(GatewayConfig(base_url="http://gw:3001"))
        transport.on_inbound_message(bot.handle_inbound)
        transport.on_state_change(bot.handle_state)
        await transport.start()
    """

    def __init__(self, config: Optional[GatewayConfig] = None) -> None:
        self.config = config or GatewayConfig()
        self._session: Optional[aiohttp.ClientSession] = None
        self._inbound_handler: Optional[InboundHandler] = None
        self._state_handler: Optional[StateHandler] = None
        self._state: BotStatus = BotStatus.INITIALIZING
        self._cursor: Optional[int] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def state(self) -> BotStatus:
        return self._state

    def on_inbound_message(self, handler: InboundHandler) -> None:
        self._inbound_handler = handler

    def on_state_change(self, handler: StateHandler) -> None:
        self._state_handler = handler

    # ========== Lifecycle ==========

    async def start(self) -> None:
        if self._task is not None:
            return
        headers = {"Authorization": f"Bearer {self.config.token}"} if self.config.token else None
        self._session = aiohttp.ClientSession(
            base_url=self.config.base_url.rstrip("/"),
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.config.http_timeout),
        )
        self._running = True
        await self._set_state(BotStatus.CONNECTING)
        self._task = asyncio.create_task(self._poll_loop(), name="gateway-poll")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._session:
            await self._session.close()
            self._session = None

    # ========== Outbound ==========

    async def send(self, address: str, text: str) -> bool:
        """
        Deliver `text` to `address`.

        Returns False when the gateway refuses the message.

        Raises:
            TransportError: gateway unreachable or timed out
        """
        session = self._require_session()
        try:
            async with session.post("/send", json={"address": address, "text": text}) as resp:
                if resp.status >= 300:
                    log.warning("gateway_send_rejected status=%s address=%s", resp.status, address)
                    return False
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(f"gateway send failed: {exc}") from exc
        return bool(body.get("ok", True)) if isinstance(body, dict) else True

    async def resolve_group_address(self, name_substring: str, *more: str) -> Optional[str]:
        """First group whose name contains every given substring (case-insensitive)."""
        needles = [s.lower() for s in (name_substring, *more) if s]
        try:
            chats = await self._get_json("/chats")
        except TransportError as exc:
            log.error(dumps({"event": "group_resolve_error", "err": str(exc)}))
            return None
        for chat in chats.get("chats", []):
            if not isinstance(chat, dict):
                continue
            name = str(chat.get("name", "")).lower()
            if chat.get("isGroup") and all(n in name for n in needles):
                return str(chat.get("address"))
        return None

    # ========== Inbound polling ==========

    async def poll_once(self) -> int:
        """One state check plus one message fetch. Returns messages delivered."""
        state_body = await self._get_json("/state")
        try:
            state = BotStatus(state_body.get("state", BotStatus.CONNECTING.value))
        except ValueError:
            state = BotStatus.ERROR
        await self._set_state(state)
        if state is not BotStatus.CONNECTED:
            return 0

        params = {"since": str(self._cursor)} if self._cursor is not None else None
        body = await self._get_json("/messages", params=params)
        messages = body.get("messages", [])
        if not isinstance(messages, list):
            log.warning(dumps({"event": "gateway_bad_messages", "type": type(messages).__name__}))
            messages = []
        if "cursor" in body:
            try:
                self._cursor = int(body["cursor"])
            except (TypeError, ValueError):
                log.warning(dumps({"event": "gateway_bad_cursor", "cursor": str(body["cursor"])}))

        delivered = 0
        for raw in messages:
            if self._inbound_handler is None:
                break
            if not isinstance(raw, dict):
                log.warning(dumps({"event": "gateway_bad_message", "type": type(raw).__name__}))
                continue
            await self._inbound_handler(parse_inbound(raw))
            delivered += 1
        return delivered

    async def _poll_loop(self) -> None:
        backoff = self.config.poll_interval_sec
        while self._running:
            await asyncio.sleep(backoff + random.uniform(0, backoff * 0.1))
            try:
                await self.poll_once()
                backoff = self.config.poll_interval_sec
            except TransportError as exc:
                log.warning(dumps({"event": "gateway_poll_error", "err": str(exc)}))
                await self._set_state(BotStatus.DISCONNECTED)
                backoff = min(self.config.max_backoff_sec, backoff * 2)

    # ========== Internals ==========

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        session = self._require_session()
        try:
            async with session.get(path, params=params) as resp:
                resp.raise_for_status()
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(f"gateway GET {path} failed: {exc}") from exc
        return body if isinstance(body, dict) else {}

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise TransportError("gateway transport not started")
        return self._session

    async def _set_state(self, state: BotStatus) -> None:
        if state is self._state:
            return
        self._state = state
        log.info(dumps({"event": "transport_state", "state": state.value}))
        if self._state_handler:
            await self._state_handler(state)
