"""
Messaging transport contract.

The bot never speaks the messaging wire protocol itself. A transport
delivers inbound chat events, sends text to opaque addresses and reports
its connection lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol


class BotStatus(str, Enum):
    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    WAITING_FOR_QR = "waiting_for_qr"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    AUTH_FAILED = "auth_failed"
    ERROR = "error"


@dataclass(frozen=True)
class InboundMessage:
    """
    One inbound chat event.

    `sender_is_admin` is supplied by the transport (or whoever builds the
    event); the core never derives privilege on its own.
    """
    address: str
    sender_id: str
    sender_display_name: str
    text: str
    is_group: bool
    group_name: str = ""
    sender_is_admin: bool = False


InboundHandler = Callable[[InboundMessage], Awaitable[None]]
StateHandler = Callable[[BotStatus], Awaitable[None]]


class Transport(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def on_inbound_message(self, handler: InboundHandler) -> None: ...

    def on_state_change(self, handler: StateHandler) -> None: ...

    async def send(self, address: str, text: str) -> bool: ...

    async def resolve_group_address(self, name_substring: str, *more: str) -> Optional[str]: ...
