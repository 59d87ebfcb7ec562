"""
In-memory status board: connection lifecycle and the resolved group.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from orderbot.core.utils import local_now
from orderbot.transport.base import BotStatus


class StatusBoard:
    def __init__(self, service: str = "DAATCS") -> None:
        self.service = service
        self._status = BotStatus.INITIALIZING
        self._changed_at: datetime = local_now()
        self._group_address: Optional[str] = None

    @property
    def status(self) -> BotStatus:
        return self._status

    @property
    def group_address(self) -> Optional[str]:
        return self._group_address

    @property
    def group_connected(self) -> bool:
        return self._group_address is not None

    def set_status(self, status: BotStatus) -> bool:
        """Record a lifecycle change. Returns False when nothing changed."""
        if status is self._status:
            return False
        self._status = status
        self._changed_at = local_now()
        return True

    def set_group(self, address: Optional[str]) -> None:
        self._group_address = address

    def snapshot(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "status": self._status.value,
            "statusChangedAt": self._changed_at.isoformat(),
            "groupConnected": self.group_connected,
        }
