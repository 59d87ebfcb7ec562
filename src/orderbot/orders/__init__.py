"""
Order book package.

Order model, status enumeration and the in-memory OrderStore.
"""

from orderbot.orders.models import (
    STATUS_EMOJI,
    SYSTEM_ACTOR,
    TERMINAL_STATUSES,
    HistoryEntry,
    Order,
    OrderStatus,
    is_terminal,
)
from orderbot.orders.store import OrderStore, normalize_order_id

__all__ = [
    "STATUS_EMOJI",
    "SYSTEM_ACTOR",
    "TERMINAL_STATUSES",
    "HistoryEntry",
    "Order",
    "OrderStatus",
    "OrderStore",
    "is_terminal",
    "normalize_order_id",
]
