"""
Prometheus metrics and human-facing counters.

BotMetrics is scraped from /metrics; BotStats feeds the chat replies
(`/stats`, `/salud`) and the status endpoint.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from orderbot.core.utils import local_now


class BotMetrics:
    """Prometheus collectors on a private registry (tests can build many)."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self._registry = reg

        # === Inbound ===
        self.messages_received = Counter(
            'messages_received_total',
            'Inbound chat events accepted for processing',
            registry=reg
        )
        self.commands = Counter(
            'commands_total',
            'Commands executed',
            labelnames=['command'],
            registry=reg
        )

        # === Outbound ===
        self.messages_sent = Counter(
            'messages_sent_total',
            'Messages delivered to the transport',
            registry=reg
        )
        self.messages_suppressed = Counter(
            'messages_suppressed_total',
            'Outbound messages not sent',
            labelnames=['reason'],
            registry=reg
        )
        self.send_delay_seconds = Histogram(
            'send_delay_seconds',
            'Jitter delay applied before each send',
            buckets=[1, 2, 3, 4, 5, 6, 7, 8, 10, 15],
            registry=reg
        )

        # === Order book ===
        self.orders_active = Gauge(
            'orders_active',
            'Orders not delivered or cancelled',
            registry=reg
        )
        self.orders_total = Gauge(
            'orders_total',
            'Orders in the book',
            registry=reg
        )

        # === Operational ===
        self.errors = Counter(
            'errors_total',
            'Errors by component',
            labelnames=['component'],
            registry=reg
        )
        self.persist_failures = Counter(
            'persist_failures_total',
            'Snapshot writes that failed',
            registry=reg
        )
        self.backups_written = Counter(
            'backups_written_total',
            'Backup snapshots written',
            registry=reg
        )

    def get_registry(self) -> CollectorRegistry:
        return self._registry

    def render(self) -> bytes:
        return generate_latest(self._registry)


@dataclass
class BotStats:
    """Process-level counters shown to people, reset on restart."""
    messages_received: int = 0
    messages_sent: int = 0
    commands_executed: int = 0
    errors: int = 0
    start_monotonic: float = field(default_factory=time.monotonic)
    start_time: datetime = field(default_factory=local_now)
    last_activity: datetime = field(default_factory=local_now)

    @property
    def uptime_sec(self) -> int:
        return int(time.monotonic() - self.start_monotonic)

    def touch(self) -> None:
        self.last_activity = local_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messagesReceived": self.messages_received,
            "messagesSent": self.messages_sent,
            "commandsExecuted": self.commands_executed,
            "errors": self.errors,
            "startTime": self.start_time.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
        }
