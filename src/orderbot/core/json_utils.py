"""
JSON helpers backed by orjson.

Usage:
    from orderbot.core.json_utils import dumps, loads

    log.info(dumps({"event": "order_created", "order_id": "001"}))
"""

from __future__ import annotations

from typing import Any

import orjson


def dumps(obj: Any) -> str:
    """Compact JSON encode to string (log payloads, HTTP bodies)."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def dumps_bytes(obj: Any) -> bytes:
    """Compact JSON encode to bytes."""
    return orjson.dumps(obj, default=str)


def dumps_pretty(obj: Any) -> bytes:
    """Indented JSON for files read by humans. Key order follows the input dicts."""
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE)


def loads(s: str | bytes) -> Any:
    return orjson.loads(s)
