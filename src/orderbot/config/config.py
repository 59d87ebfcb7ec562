"""
Environment-driven configuration.

Every key is read from `ORDERBOT_*` variables after `load_dotenv()`. The
`ORDERBOT_PROFILE` value (`constrained` or `relaxed`) picks the defaults
for outbound volume and jitter; explicit variables override the profile.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from orderbot.commands.dispatcher import DispatcherConfig
from orderbot.dispatch.scheduler import SchedulerConfig
from orderbot.state.persistence import PersistenceConfig
from orderbot.transport.gateway import GatewayConfig

PREFIX = "ORDERBOT_"

# hourly_cap, min_delay_ms, max_delay_ms
PROFILES: Dict[str, Dict[str, int]] = {
    "constrained": {"hourly_cap": 15, "min_delay_ms": 3000, "max_delay_ms": 7000},
    "relaxed": {"hourly_cap": 30, "min_delay_ms": 2000, "max_delay_ms": 5000},
}


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None or val == "":
        return default
    return val.lower() in {"1", "true", "yes", "y"}


def _str_env(key: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(key)
    return default if raw is None or raw == "" else raw


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return int(raw)


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    profile: str
    service_name: str
    # Dispatch
    hourly_cap: int
    min_delay_ms: int
    max_delay_ms: int
    recent_threshold_sec: float
    cooldown_extra_ms: int
    working_hours_start: int
    working_hours_end: int
    # Persistence
    data_dir: str
    backup_dir: Optional[str]
    backup_interval_sec: float
    backup_retention: int
    flush_interval_sec: float
    # Gating
    orders_keyword: str
    org_keyword: str
    # Status surface
    status_host: str
    status_port: int
    status_token: Optional[str]
    keepalive_enabled: bool
    keepalive_interval_sec: float
    keepalive_url: Optional[str]
    # Transport
    gateway_url: str
    gateway_token: Optional[str]
    gateway_poll_sec: float
    # Logging
    log_level: str
    log_file: str

    def dump(self) -> dict:
        """Settings as a dict with secrets masked, for the startup log."""
        data = self.__dict__.copy()
        for key in ("status_token", "gateway_token"):
            if data.get(key):
                data[key] = "***"
        return data

    @property
    def snapshot_path(self) -> str:
        return str(Path(self.data_dir) / "pedidos.json")

    @classmethod
    def load(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)

        profile = (_str_env(PREFIX + "PROFILE", "constrained") or "constrained").lower()
        base = PROFILES.get(profile, PROFILES["constrained"])

        return cls(
            profile=profile,
            service_name=_str_env(PREFIX + "SERVICE_NAME", "DAATCS"),
            hourly_cap=_int_env(PREFIX + "HOURLY_CAP", base["hourly_cap"]),
            min_delay_ms=_int_env(PREFIX + "MIN_DELAY_MS", base["min_delay_ms"]),
            max_delay_ms=_int_env(PREFIX + "MAX_DELAY_MS", base["max_delay_ms"]),
            recent_threshold_sec=_float_env(PREFIX + "RECENT_THRESHOLD_SEC", 30.0),
            cooldown_extra_ms=_int_env(PREFIX + "COOLDOWN_EXTRA_MS", 2000),
            working_hours_start=_int_env(PREFIX + "WORKING_HOURS_START", 6),
            working_hours_end=_int_env(PREFIX + "WORKING_HOURS_END", 22),
            data_dir=_str_env(PREFIX + "DATA_DIR", "database"),
            backup_dir=_str_env(PREFIX + "BACKUP_DIR", None),
            backup_interval_sec=_float_env(PREFIX + "BACKUP_INTERVAL_SEC", 6 * 60 * 60),
            backup_retention=_int_env(PREFIX + "BACKUP_RETENTION", 5),
            flush_interval_sec=_float_env(PREFIX + "FLUSH_INTERVAL_SEC", 30.0),
            orders_keyword=_str_env(PREFIX + "ORDERS_KEYWORD", "pedidos"),
            org_keyword=_str_env(PREFIX + "ORG_KEYWORD", "daatcs"),
            status_host=_str_env(PREFIX + "STATUS_HOST", "0.0.0.0"),
            status_port=_int_env(PREFIX + "STATUS_PORT", 3000),
            status_token=_str_env(PREFIX + "STATUS_TOKEN", None),
            keepalive_enabled=env_bool(PREFIX + "KEEPALIVE_ENABLED", False),
            keepalive_interval_sec=_float_env(PREFIX + "KEEPALIVE_INTERVAL_SEC", 25 * 60),
            keepalive_url=_str_env(PREFIX + "KEEPALIVE_URL", None),
            gateway_url=_str_env(PREFIX + "GATEWAY_URL", "http://127.0.0.1:3001"),
            gateway_token=_str_env(PREFIX + "GATEWAY_TOKEN", None),
            gateway_poll_sec=_float_env(PREFIX + "GATEWAY_POLL_SEC", 2.0),
            log_level=(_str_env(PREFIX + "LOG_LEVEL", "INFO") or "INFO").upper(),
            log_file=_str_env(PREFIX + "LOG_FILE", "orderbot.log"),
        )

    # ========== Component configs ==========

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            hourly_cap=self.hourly_cap,
            min_delay_ms=self.min_delay_ms,
            max_delay_ms=self.max_delay_ms,
            recent_threshold_sec=self.recent_threshold_sec,
            cooldown_extra_ms=self.cooldown_extra_ms,
            working_hours_start=self.working_hours_start,
            working_hours_end=self.working_hours_end,
        )

    def persistence_config(self) -> PersistenceConfig:
        return PersistenceConfig(
            snapshot_path=self.snapshot_path,
            backup_dir=self.backup_dir,
            backup_interval_sec=self.backup_interval_sec,
            backup_retention=self.backup_retention,
            flush_interval_sec=self.flush_interval_sec,
        )

    def dispatcher_config(self) -> DispatcherConfig:
        return DispatcherConfig(
            orders_keyword=self.orders_keyword,
            org_keyword=self.org_keyword,
            service_name=self.service_name,
        )

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(
            base_url=self.gateway_url,
            token=self.gateway_token,
            poll_interval_sec=self.gateway_poll_sec,
        )

    def resolve_keepalive_url(self) -> str:
        if self.keepalive_url:
            return self.keepalive_url
        host = "127.0.0.1" if self.status_host in ("0.0.0.0", "") else self.status_host
        return f"http://{host}:{self.status_port}/health"
