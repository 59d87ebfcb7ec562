"""
OrderStore: single source of truth for the order book.

Owns every Order, the next-id counter, the total counter and the cached
active-order counter. Pure data + transition logic; persistence is handled
by PersistenceManager, which only reads `to_snapshot()` and restores with
`from_snapshot()`.

Active counter:
    Maintained incrementally. `create_order` adds one; `change_status`
    adds/subtracts one only when the transition crosses the
    terminal-for-counting boundary. On restore the counter is re-derived
    from the orders themselves.

Thread Safety:
    None internally. The command dispatcher and the persistence loops
    serialize access through a shared asyncio.Lock.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from orderbot.core.json_utils import dumps
from orderbot.core.utils import local_now
from orderbot.errors import InvalidStatusError, NotFoundError, ValidationError
from orderbot.orders.models import (
    SYSTEM_ACTOR,
    HistoryEntry,
    Order,
    OrderStatus,
    is_terminal,
)

log = logging.getLogger("orderbot")

ID_WIDTH = 3


def normalize_order_id(raw: str) -> str:
    """Left-pad a user-typed id ("1", "#7") to the stored form ("001", "007")."""
    return raw.strip().lstrip("#").zfill(ID_WIDTH)


class OrderStore:
    """
    Order book with a permissive, fully connected status graph.

    Usage:
        store = OrderStore()
        order = store.create_order("Camiseta M azul", "Ana", "34600111222@c.us")
        store.change_status(order.id, "confirmado", actor="Luis")
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        self._clock = clock or local_now
        self._log_event = log_event or self._default_log

        self._orders: Dict[str, Order] = {}
        self._next_id: int = 1
        self._total_count: int = 0
        self._active_count: int = 0

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.info(dumps({"event": event, **kwargs}))

    # ========== Counters ==========

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def active_count(self) -> int:
        return self._active_count

    def __len__(self) -> int:
        return len(self._orders)

    # ========== Mutations ==========

    def create_order(self, description: str, customer_name: str, customer_contact: str) -> Order:
        """
        Create an order in `pendiente` and allocate the next id.

        Raises:
            ValidationError: description is empty or whitespace
        """
        description = (description or "").strip()
        if not description:
            raise ValidationError("description is required")

        now = self._clock()
        order_id = str(self._next_id).zfill(ID_WIDTH)
        order = Order(
            id=order_id,
            description=description,
            customer_name=customer_name,
            customer_contact=customer_contact,
            status=OrderStatus.PENDIENTE,
            created_at=now,
            updated_at=now,
            history=[HistoryEntry(OrderStatus.PENDIENTE, now, SYSTEM_ACTOR)],
        )

        self._orders[order_id] = order
        self._next_id += 1
        self._total_count += 1
        self._active_count += 1

        self._log_event("order_created", order_id=order_id, customer=customer_name)
        return order

    def change_status(self, order_id: str, new_status: OrderStatus | str, actor: str) -> Order:
        """
        Move an order to `new_status`.

        Any status may follow any other. The active counter changes by
        exactly one when the move crosses the terminal boundary.

        Raises:
            InvalidStatusError: new_status is not in the enumeration
            NotFoundError: no order with that id
        """
        status = new_status if isinstance(new_status, OrderStatus) else OrderStatus.parse(new_status)
        if status is None:
            raise InvalidStatusError(str(new_status), OrderStatus.values())

        order = self.get(order_id)
        previous = order.status
        now = self._clock()

        order.status = status
        order.updated_at = now
        order.history.append(HistoryEntry(status, now, actor))

        was_terminal, now_terminal = is_terminal(previous), is_terminal(status)
        if now_terminal and not was_terminal:
            self._active_count -= 1
        elif was_terminal and not now_terminal:
            self._active_count += 1

        self._log_event(
            "order_status_changed",
            order_id=order.id,
            from_status=previous.value,
            to_status=status.value,
            actor=actor,
            active=self._active_count,
        )
        return order

    # ========== Queries ==========

    def get(self, order_id: str) -> Order:
        order = self._orders.get(normalize_order_id(order_id))
        if order is None:
            raise NotFoundError(order_id)
        return order

    def list_active(self) -> List[Order]:
        """Active orders, most recently updated first. Display truncation is the caller's job."""
        active = [o for o in self._orders.values() if o.is_active]
        active.sort(key=lambda o: o.updated_at, reverse=True)
        return active

    def status_histogram(self) -> Dict[str, int]:
        """Count per status, derived by scanning every order."""
        counts = Counter(o.status.value for o in self._orders.values())
        return {s.value: counts[s.value] for s in OrderStatus if counts[s.value]}

    def recount_active(self) -> int:
        """Full rescan of active orders (the cached counter must always match this)."""
        return sum(1 for o in self._orders.values() if o.is_active)

    def summary(self) -> Dict[str, Any]:
        return {
            "total": len(self._orders),
            "active": self._active_count,
            "byStatus": self.status_histogram(),
        }

    # ========== Snapshot ==========

    def to_snapshot(self) -> Dict[str, Any]:
        """Persisted shape; orders in creation (id) order."""
        return {
            "orders": [o.to_dict() for o in self._orders.values()],
            "nextId": self._next_id,
            "totalCount": self._total_count,
            "activeCount": self._active_count,
        }

    @classmethod
    def from_snapshot(
        cls,
        data: Dict[str, Any],
        clock: Optional[Callable[[], datetime]] = None,
        log_event: Optional[Callable[..., None]] = None,
    ) -> "OrderStore":
        """
        Restore a store from a persisted snapshot.

        The active counter is re-derived from the orders. `nextId` never
        moves backwards past an existing id, so ids stay unique even if the
        counter in the file is stale.
        """
        store = cls(clock=clock, log_event=log_event)
        for raw in data.get("orders", []):
            order = Order.from_dict(raw)
            store._orders[order.id] = order

        highest = max((int(oid) for oid in store._orders if oid.isdigit()), default=0)
        store._next_id = max(int(data.get("nextId", 1)), highest + 1)
        store._total_count = max(int(data.get("totalCount", 0)), len(store._orders))

        derived = store.recount_active()
        persisted = data.get("activeCount")
        if persisted is not None and int(persisted) != derived:
            store._log_event(
                "active_count_rederived",
                persisted=int(persisted),
                derived=derived,
            )
        store._active_count = derived
        return store
