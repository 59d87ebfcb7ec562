"""
Keep-alive pinger.

Some hosting platforms idle a process that receives no HTTP traffic. The
pinger GETs the bot's own status endpoint on a fixed interval so the
platform sees activity. Failures are logged and counted; the loop keeps
going.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from orderbot.core.json_utils import dumps

log = logging.getLogger("orderbot")


class KeepAlive:
    """
    Usage:
        pinger = KeepAlive("http://127.0.0.1:3000/health", interval_sec=1500)
        pinger.start()
        ...
        await pinger.stop()
    """

    DEFAULT_INTERVAL_SEC = 25 * 60

    def __init__(
        self,
        url: str,
        interval_sec: float = DEFAULT_INTERVAL_SEC,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        self.url = url
        self.interval_sec = max(1.0, float(interval_sec))
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True
        self._log = log_event or self._default_log
        self._task: Optional[asyncio.Task] = None
        self._stats = {"pings": 0, "failures": 0}

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, dumps({"event": event, **kwargs}))

    def get_stats(self) -> dict:
        return dict(self._stats)

    async def ping(self) -> bool:
        """One GET. Returns True on a 2xx answer."""
        try:
            resp = await self.client.get(self.url)
        except httpx.HTTPError as exc:
            self._stats["failures"] += 1
            self._log("keepalive_failed", level=logging.WARNING, url=self.url, err=str(exc))
            return False
        self._stats["pings"] += 1
        ok = resp.is_success
        if not ok:
            self._stats["failures"] += 1
        self._log("keepalive_ping", level=logging.DEBUG if ok else logging.WARNING, status=resp.status_code)
        return ok

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            await self.ping()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="keepalive")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._owns_client:
            await self.client.aclose()
