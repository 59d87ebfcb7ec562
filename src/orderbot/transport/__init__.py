"""
Messaging transport package.

Transport contract, inbound event model and the HTTP gateway client.
"""

from orderbot.transport.base import (
    BotStatus,
    InboundHandler,
    InboundMessage,
    StateHandler,
    Transport,
)
from orderbot.transport.gateway import GatewayConfig, GatewayTransport, parse_inbound

__all__ = [
    "BotStatus",
    "GatewayConfig",
    "GatewayTransport",
    "InboundHandler",
    "InboundMessage",
    "StateHandler",
    "Transport",
    "parse_inbound",
]
