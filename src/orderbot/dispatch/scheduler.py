"""
Outbound dispatch scheduler.

The only path through which the bot sends text. Centralizes the
anti-detection policy so command handling never calls the transport
directly.

Policy, evaluated cheapest-check-first so rejected sends never pay the
jitter delay:
    1. Working-hours gate (skipped for urgent sends)
    2. Hourly volume cap, keyed by local calendar hour
    3. Per-recipient cooldown: uniform jitter in [minimum, max_delay],
       minimum widened by `cooldown_extra_ms` when the same recipient was
       written to within `recent_threshold_sec`
    4. Transport send; counters and cooldown only move on success

Thread Safety:
    One asyncio.Lock serializes the whole path, including the delay. The
    delay therefore acts as backpressure on all outbound traffic and keeps
    per-recipient submission order.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Protocol

from orderbot.core.json_utils import dumps
from orderbot.dispatch.clock import Clock, SystemClock

if TYPE_CHECKING:
    from orderbot.monitoring.metrics import BotMetrics, BotStats

log = logging.getLogger("orderbot")


class SendTransport(Protocol):
    async def send(self, address: str, text: str) -> bool: ...


class SuppressReason(str, Enum):
    OUTSIDE_HOURS = "outside_hours"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class SendResult:
    """Outcome of enqueue_send: sent, or suppressed with a reason."""
    sent: bool
    reason: Optional[SuppressReason] = None
    delay_sec: float = 0.0

    @classmethod
    def ok(cls, delay_sec: float) -> "SendResult":
        return cls(sent=True, delay_sec=delay_sec)

    @classmethod
    def suppressed(cls, reason: SuppressReason, delay_sec: float = 0.0) -> "SendResult":
        return cls(sent=False, reason=reason, delay_sec=delay_sec)


@dataclass
class SchedulerConfig:
    """Configuration for DispatchScheduler."""
    hourly_cap: int = 15
    min_delay_ms: int = 3000
    max_delay_ms: int = 7000
    recent_threshold_sec: float = 30.0
    cooldown_extra_ms: int = 2000
    working_hours_start: int = 6   # inclusive
    working_hours_end: int = 22    # inclusive

    log_event_callback: Optional[Callable[..., None]] = None


class DispatchScheduler:
    """
    Rate-limited, jittered outbound sender.

    Usage:
        scheduler = DispatchScheduler(transport, SchedulerConfig(hourly_cap=15))
        result = await scheduler.enqueue_send(group_address, "Pedido #001 creado")
        if not result.sent:
            log.info("suppressed: %s", result.reason)
    """

    def __init__(
        self,
        transport: SendTransport,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
        metrics: Optional["BotMetrics"] = None,
        stats: Optional["BotStats"] = None,
    ) -> None:
        self.transport = transport
        self.config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self.metrics = metrics
        self.bot_stats = stats

        self._lock = asyncio.Lock()
        self._bucket_key: Optional[str] = None
        self._bucket_count: int = 0
        self._last_send: Dict[str, float] = {}

        self._sent_total = 0
        self._suppressed: Dict[str, int] = {r.value: 0 for r in SuppressReason}

        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, dumps({"event": event, **kwargs}))

    # ========== Policy checks ==========

    def in_working_hours(self) -> bool:
        hour = self._clock.now().hour
        return self.config.working_hours_start <= hour <= self.config.working_hours_end

    def _current_bucket(self) -> str:
        return self._clock.now().strftime("%Y-%m-%dT%H")

    def _roll_bucket(self) -> None:
        """Check-and-reset: a new calendar hour starts a fresh counter."""
        key = self._current_bucket()
        if key != self._bucket_key:
            self._bucket_key = key
            self._bucket_count = 0

    @property
    def messages_in_hour(self) -> int:
        self._roll_bucket()
        return self._bucket_count

    def compute_delay(self, address: str) -> float:
        """Seconds to wait before sending to `address`."""
        cfg = self.config
        minimum = cfg.min_delay_ms
        last = self._last_send.get(address)
        if last is not None and self._clock.monotonic() - last < cfg.recent_threshold_sec:
            minimum += cfg.cooldown_extra_ms
        maximum = max(minimum, cfg.max_delay_ms)
        return self._rng.uniform(minimum, maximum) / 1000.0

    # ========== Public API ==========

    async def enqueue_send(self, address: str, text: str, urgent: bool = False) -> SendResult:
        """
        Send `text` to `address` if policy allows.

        Returns:
            SendResult.ok on delivery, otherwise SendResult.suppressed with
            outside_hours, rate_limited or transport_error.
        """
        async with self._lock:
            if not urgent and not self.in_working_hours():
                return self._suppress(address, SuppressReason.OUTSIDE_HOURS)

            self._roll_bucket()
            if self._bucket_count >= self.config.hourly_cap:
                return self._suppress(address, SuppressReason.RATE_LIMITED)

            delay = self.compute_delay(address)
            if self.metrics:
                self.metrics.send_delay_seconds.observe(delay)
            await self._sleep(delay)

            try:
                ok = await self.transport.send(address, text)
                err = None if ok else "send returned failure"
            except Exception as exc:
                ok, err = False, str(exc)

            if not ok:
                if self.metrics:
                    self.metrics.errors.labels(component="transport").inc()
                if self.bot_stats:
                    self.bot_stats.errors += 1
                return self._suppress(address, SuppressReason.TRANSPORT_ERROR, delay, err=err)

            self._roll_bucket()
            self._bucket_count += 1
            self._last_send[address] = self._clock.monotonic()
            self._sent_total += 1
            if self.metrics:
                self.metrics.messages_sent.inc()
            if self.bot_stats:
                self.bot_stats.messages_sent += 1

            log.debug("message_sent address=%s delay=%.2f preview=%s", address, delay, text[:50])
            return SendResult.ok(delay)

    def stats(self) -> Dict[str, Any]:
        return {
            "messages_in_hour": self.messages_in_hour,
            "hourly_cap": self.config.hourly_cap,
            "sent_total": self._sent_total,
            "suppressed": dict(self._suppressed),
            "working_hours": [self.config.working_hours_start, self.config.working_hours_end],
            "in_working_hours": self.in_working_hours(),
        }

    # ========== Internals ==========

    def _suppress(
        self,
        address: str,
        reason: SuppressReason,
        delay: float = 0.0,
        err: Optional[str] = None,
    ) -> SendResult:
        self._suppressed[reason.value] += 1
        if self.metrics:
            self.metrics.messages_suppressed.labels(reason=reason.value).inc()
        level = logging.WARNING if reason is SuppressReason.TRANSPORT_ERROR else logging.INFO
        payload: Dict[str, Any] = {"address": address, "reason": reason.value}
        if err:
            payload["err"] = err
        self._log_event("send_suppressed", level=level, **payload)
        return SendResult.suppressed(reason, delay)
