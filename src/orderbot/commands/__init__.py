"""
Chat command layer: parsing, reply rendering, dispatch.
"""

from orderbot.commands.dispatcher import ALIASES, CommandDispatcher, DispatcherConfig
from orderbot.commands.parser import PREFIXES, ParsedCommand, parse_command

__all__ = [
    "ALIASES",
    "CommandDispatcher",
    "DispatcherConfig",
    "PREFIXES",
    "ParsedCommand",
    "parse_command",
]
