"""
Core utilities package.

Serialization and time helpers shared by every component.
"""

from orderbot.core.json_utils import dumps, dumps_bytes, dumps_pretty, loads
from orderbot.core.utils import format_display, format_uptime, local_now, now_ms

__all__ = [
    "dumps",
    "dumps_bytes",
    "dumps_pretty",
    "loads",
    "format_display",
    "format_uptime",
    "local_now",
    "now_ms",
]
