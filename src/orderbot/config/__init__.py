"""
Configuration package.

Environment loading and startup validation.
"""

from orderbot.config.config import PROFILES, Settings
from orderbot.config.config_validator import ConfigValidator, validate_and_log, validate_config

__all__ = [
    "PROFILES",
    "Settings",
    "ConfigValidator",
    "validate_and_log",
    "validate_config",
]
