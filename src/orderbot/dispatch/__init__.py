"""
Outbound dispatch package.

DispatchScheduler and its clock abstraction.
"""

from orderbot.dispatch.clock import Clock, FakeClock, SystemClock
from orderbot.dispatch.scheduler import (
    DispatchScheduler,
    SchedulerConfig,
    SendResult,
    SuppressReason,
)

__all__ = [
    "Clock",
    "DispatchScheduler",
    "FakeClock",
    "SchedulerConfig",
    "SendResult",
    "SuppressReason",
    "SystemClock",
]
