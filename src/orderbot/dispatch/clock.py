"""
Clock abstraction for the dispatch scheduler.

Wall-clock time drives the working-hours gate and the hour bucket;
monotonic time drives per-recipient cooldown. Tests swap in FakeClock to
cross hour boundaries without waiting.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Protocol

from orderbot.core.utils import local_now


class Clock(Protocol):
    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...


class SystemClock:
    def now(self) -> datetime:
        return local_now()

    def monotonic(self) -> float:
        return time.monotonic()


class FakeClock:
    """Manually advanced clock; wall and monotonic time move together."""

    def __init__(self, start: datetime) -> None:
        self._now = start
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds

    def set(self, when: datetime) -> None:
        delta = (when - self._now).total_seconds()
        self._now = when
        self._mono += max(0.0, delta)
