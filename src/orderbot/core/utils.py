"""
Time helpers shared across components.
"""

from __future__ import annotations

import time
from datetime import datetime


def now_ms() -> int:
    return int(time.time() * 1000)


def local_now() -> datetime:
    """Timezone-aware local wall-clock time."""
    return datetime.now().astimezone()


def format_display(ts: datetime) -> str:
    """dd/mm/yyyy hh:mm, the format shown in chat replies."""
    return ts.astimezone().strftime("%d/%m/%Y %H:%M")


def format_uptime(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
