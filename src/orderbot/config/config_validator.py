"""
Configuration validation.

- Range checks for numeric parameters
- Cross-field rules (delay window, working hours)
- Warnings for settings that are valid but likely unintended
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Tuple

from orderbot.config.config import PROFILES

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    ERROR = auto()    # Blocks startup
    WARNING = auto()  # Logs warning but allows startup


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: ValidationSeverity
    value: Any = None
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    def has_warnings(self) -> bool:
        return any(i.severity == ValidationSeverity.WARNING for i in self.issues)

    def get_errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    def get_warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]


class ConfigValidator:
    """Validates a Settings instance before the bot starts."""

    # (min, max) inclusive
    NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
        "hourly_cap": (1, 1000),
        "min_delay_ms": (0, 600_000),
        "max_delay_ms": (0, 600_000),
        "recent_threshold_sec": (0.0, 3600.0),
        "cooldown_extra_ms": (0, 600_000),
        "working_hours_start": (0, 23),
        "working_hours_end": (0, 23),
        "backup_interval_sec": (60.0, 7 * 24 * 3600.0),
        "backup_retention": (1, 1000),
        "flush_interval_sec": (1.0, 3600.0),
        "status_port": (1, 65535),
        "keepalive_interval_sec": (10.0, 24 * 3600.0),
        "gateway_poll_sec": (0.1, 300.0),
    }

    REQUIRED_STRINGS: List[str] = [
        "service_name",
        "data_dir",
        "orders_keyword",
        "org_keyword",
        "gateway_url",
    ]

    def __init__(self) -> None:
        self._custom_validators: List[Callable[[Any], List[ValidationIssue]]] = []

    def register_validator(self, validator: Callable[[Any], List[ValidationIssue]]) -> None:
        self._custom_validators.append(validator)

    def validate(self, cfg) -> ValidationResult:
        issues: List[ValidationIssue] = []
        issues.extend(self._validate_required_strings(cfg))
        issues.extend(self._validate_numeric_ranges(cfg))
        issues.extend(self._validate_cross_field(cfg))
        issues.extend(self._check_risky_configs(cfg))

        for validator in self._custom_validators:
            try:
                custom_issues = validator(cfg)
            except Exception as e:
                logger.warning(f"Custom validator error: {e}")
                continue
            if custom_issues:
                issues.extend(custom_issues)

        has_errors = any(i.severity == ValidationSeverity.ERROR for i in issues)
        return ValidationResult(valid=not has_errors, issues=issues)

    def _validate_required_strings(self, cfg) -> List[ValidationIssue]:
        issues = []
        for field_name in self.REQUIRED_STRINGS:
            value = getattr(cfg, field_name, None)
            if not value or (isinstance(value, str) and not value.strip()):
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"Required field '{field_name}' is missing or empty",
                    severity=ValidationSeverity.ERROR,
                    value=value,
                ))
        return issues

    def _validate_numeric_ranges(self, cfg) -> List[ValidationIssue]:
        issues = []
        for field_name, (min_val, max_val) in self.NUMERIC_RANGES.items():
            value = getattr(cfg, field_name, None)
            try:
                num_value = float(value)
            except (TypeError, ValueError):
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' has invalid numeric value: {value}",
                    severity=ValidationSeverity.ERROR,
                    value=value,
                ))
                continue
            if num_value < min_val:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' value {num_value} is below minimum {min_val}",
                    severity=ValidationSeverity.ERROR,
                    value=num_value,
                    suggestion=f"Set to at least {min_val}",
                ))
            elif num_value > max_val:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' value {num_value} is above maximum {max_val}",
                    severity=ValidationSeverity.ERROR,
                    value=num_value,
                    suggestion=f"Set to at most {max_val}",
                ))
        return issues

    def _validate_cross_field(self, cfg) -> List[ValidationIssue]:
        issues = []
        if cfg.min_delay_ms > cfg.max_delay_ms:
            issues.append(ValidationIssue(
                field="min_delay_ms",
                message=f"min_delay_ms ({cfg.min_delay_ms}) exceeds max_delay_ms ({cfg.max_delay_ms})",
                severity=ValidationSeverity.ERROR,
                suggestion="Swap the values or widen max_delay_ms",
            ))
        if cfg.working_hours_start > cfg.working_hours_end:
            issues.append(ValidationIssue(
                field="working_hours_start",
                message=(
                    f"working hours start ({cfg.working_hours_start}) is after "
                    f"end ({cfg.working_hours_end})"
                ),
                severity=ValidationSeverity.ERROR,
                suggestion="Windows crossing midnight are not supported",
            ))
        return issues

    def _check_risky_configs(self, cfg) -> List[ValidationIssue]:
        issues = []
        if cfg.profile not in PROFILES:
            issues.append(ValidationIssue(
                field="profile",
                message=f"Unknown profile '{cfg.profile}', using constrained defaults",
                severity=ValidationSeverity.WARNING,
                value=cfg.profile,
                suggestion=f"Use one of: {', '.join(PROFILES)}",
            ))
        if cfg.hourly_cap > PROFILES["relaxed"]["hourly_cap"]:
            issues.append(ValidationIssue(
                field="hourly_cap",
                message=f"Hourly cap {cfg.hourly_cap} is above the relaxed profile",
                severity=ValidationSeverity.WARNING,
                value=cfg.hourly_cap,
                suggestion="High outbound volume raises the chance of the account being flagged",
            ))
        if cfg.status_host not in ("127.0.0.1", "localhost") and not cfg.status_token:
            issues.append(ValidationIssue(
                field="status_token",
                message="Status server is reachable from outside without a token",
                severity=ValidationSeverity.WARNING,
                suggestion="Set ORDERBOT_STATUS_TOKEN",
            ))
        return issues


def validate_config(cfg) -> ValidationResult:
    return ConfigValidator().validate(cfg)


def validate_and_log(cfg, logger_instance=None) -> bool:
    """
    Validate config and log all issues.

    Returns:
        True if config is valid (no errors), False otherwise
    """
    log = logger_instance or logger
    result = validate_config(cfg)

    for issue in result.get_errors():
        msg = f"CONFIG ERROR: {issue.message}"
        if issue.suggestion:
            msg += f" (suggestion: {issue.suggestion})"
        log.error(msg)

    for issue in result.get_warnings():
        msg = f"CONFIG WARNING: {issue.message}"
        if issue.suggestion:
            msg += f" (suggestion: {issue.suggestion})"
        log.warning(msg)

    if result.valid:
        log.info("Configuration validation passed")
    else:
        log.error(f"Configuration validation failed with {len(result.get_errors())} error(s)")

    return result.valid
