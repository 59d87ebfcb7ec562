"""
Chat command parsing.

A command is any text starting with one of PREFIXES; the first word is the
command name (case-insensitive), the rest are whitespace-split arguments.
The text after the command word is also kept verbatim for free-text fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

PREFIXES: Tuple[str, ...] = ("/", ".", "!")


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    args: Tuple[str, ...]
    tail: str = ""

    @property
    def rest(self) -> str:
        """Everything after the command word, line breaks and spacing intact."""
        return self.tail

    def rest_from(self, index: int) -> str:
        return " ".join(self.args[index:])


def parse_command(text: str) -> Optional[ParsedCommand]:
    """
    Split `text` into a command.

    Returns None for text without a prefix. A bare prefix yields an empty
    command name, which the dispatcher treats as unrecognized.
    """
    body = text.strip()
    if not body.startswith(PREFIXES):
        return None
    parts = body[1:].split(None, 1)
    if not parts:
        return ParsedCommand(name="", args=())
    tail = parts[1] if len(parts) > 1 else ""
    return ParsedCommand(name=parts[0].lower(), args=tuple(tail.split()), tail=tail)
