"""
Order model and status enumeration.

Status graph is fully connected: any status may follow any other, including
reopening a delivered or cancelled order. The only structural notion is the
terminal-for-counting set used by the active-order counter.

    pendiente ─> confirmado ─> proceso ─> diseño ─> produccion ─> control ─> listo ─> entregado
        (any status may move to any other; entregado/cancelado count as inactive)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class OrderStatus(str, Enum):
    PENDIENTE = "pendiente"
    CONFIRMADO = "confirmado"
    PROCESO = "proceso"
    DISENO = "diseño"
    PRODUCCION = "produccion"
    CONTROL = "control"
    LISTO = "listo"
    ENTREGADO = "entregado"      # terminal for counting
    CANCELADO = "cancelado"      # terminal for counting
    PAUSADO = "pausado"

    @classmethod
    def parse(cls, raw: str) -> Optional["OrderStatus"]:
        """Case-insensitive lookup by value; None when unknown."""
        key = raw.strip().lower()
        for status in cls:
            if status.value == key:
                return status
        return None

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(s.value for s in cls)


TERMINAL_STATUSES = frozenset({OrderStatus.ENTREGADO, OrderStatus.CANCELADO})

STATUS_EMOJI: Dict[OrderStatus, str] = {
    OrderStatus.PENDIENTE: "⏳",
    OrderStatus.CONFIRMADO: "✅",
    OrderStatus.PROCESO: "🔄",
    OrderStatus.DISENO: "🎨",
    OrderStatus.PRODUCCION: "🏭",
    OrderStatus.CONTROL: "🔍",
    OrderStatus.LISTO: "📦",
    OrderStatus.ENTREGADO: "🎁",
    OrderStatus.CANCELADO: "❌",
    OrderStatus.PAUSADO: "⏸️",
}

SYSTEM_ACTOR = "system"


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


@dataclass(frozen=True)
class HistoryEntry:
    """One status change in an order's audit trail."""
    status: OrderStatus
    timestamp: datetime
    actor: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            status=OrderStatus(data["status"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            actor=str(data.get("actor", "")),
        )


@dataclass
class Order:
    """
    A tracked customer order.

    `id`, `description`, `customer_name`, `customer_contact` and `created_at`
    never change after creation; `status`, `updated_at` and `history` are
    only touched by OrderStore.
    """
    id: str
    description: str
    customer_name: str
    customer_contact: str
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    history: List[HistoryEntry] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return not is_terminal(self.status)

    def to_dict(self) -> Dict[str, Any]:
        """Persisted shape. Key order is fixed so snapshots serialize identically."""
        return {
            "id": self.id,
            "description": self.description,
            "customerName": self.customer_name,
            "customerContact": self.customer_contact,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        history = [HistoryEntry.from_dict(h) for h in data.get("history", [])]
        status = OrderStatus(data["status"])
        created_at = datetime.fromisoformat(data["createdAt"])
        if not history:
            history = [HistoryEntry(OrderStatus.PENDIENTE, created_at, SYSTEM_ACTOR)]
        return cls(
            id=str(data["id"]),
            description=str(data["description"]),
            customer_name=str(data.get("customerName", "")),
            customer_contact=str(data.get("customerContact", "")),
            status=status,
            created_at=created_at,
            updated_at=datetime.fromisoformat(data.get("updatedAt", data["createdAt"])),
            history=history,
        )
