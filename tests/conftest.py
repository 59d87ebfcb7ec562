"""
Pytest configuration and fixtures.
Adds src/ to Python path so tests can import the orderbot package.
"""

import os
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

# Add the repo root's src/ directory to sys.path
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from orderbot.dispatch.clock import FakeClock  # noqa: E402

# Monday morning, inside the default 6-22 window
WORKDAY_10AM = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


class RecordingTransport:
    """Fake transport: records sends, can refuse or raise on demand."""

    def __init__(self, groups: Optional[List[Tuple[str, str]]] = None) -> None:
        self.sent: List[Tuple[str, str]] = []
        self.fail_with: Optional[Exception] = None
        self.refuse = False
        self.groups = groups or []
        self.inbound_handler = None
        self.state_handler = None
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def on_inbound_message(self, handler) -> None:
        self.inbound_handler = handler

    def on_state_change(self, handler) -> None:
        self.state_handler = handler

    async def send(self, address: str, text: str) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        if self.refuse:
            return False
        self.sent.append((address, text))
        return True

    async def resolve_group_address(self, name_substring: str, *more: str) -> Optional[str]:
        needles = [s.lower() for s in (name_substring, *more)]
        for address, name in self.groups:
            if all(n in name.lower() for n in needles):
                return address
        return None


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays without waiting."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class TickingClock:
    """Callable wall clock for OrderStore; each call moves one second forward."""

    def __init__(self, start: datetime = WORKDAY_10AM) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def fake_clock():
    return FakeClock(WORKDAY_10AM)


@pytest.fixture
def transport():
    return RecordingTransport(groups=[("120363-pedidos@g.us", "Pedidos DAATCS Taller")])


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def ticking_clock():
    return TickingClock()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every ORDERBOT_* variable so tests see defaults."""
    for key in list(os.environ):
        if key.startswith("ORDERBOT_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
