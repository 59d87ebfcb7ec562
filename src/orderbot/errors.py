"""
Error taxonomy for the order bot.

User-facing errors (validation, not found, invalid status, permission) are
turned into chat replies by the command dispatcher. Transport and persistence
errors stay inside their component and are only logged and counted.
"""

from __future__ import annotations

from typing import Sequence


class OrderBotError(Exception):
    """Base class for all order bot errors."""


class ValidationError(OrderBotError):
    """Malformed command arguments or order fields."""


class NotFoundError(OrderBotError):
    """No order with the requested id."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"order {order_id} not found")
        self.order_id = order_id


class InvalidStatusError(OrderBotError):
    """Status outside the fixed enumeration."""

    def __init__(self, status: str, valid: Sequence[str]) -> None:
        super().__init__(f"invalid status {status!r}")
        self.status = status
        self.valid = tuple(valid)


class PermissionDeniedError(OrderBotError):
    """Privileged command issued without the elevated flag."""


class TransportError(OrderBotError):
    """The messaging transport failed to deliver."""


class PersistenceError(OrderBotError):
    """Snapshot could not be read or written."""
