"""
Application shell: wires store, persistence, scheduler, dispatcher,
transport and the status surface into one running bot.

Inbound events are queued and consumed by a single worker task, so
commands are processed strictly in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from orderbot.commands.dispatcher import CommandDispatcher
from orderbot.commands.replies import connected_announcement
from orderbot.config.config import Settings
from orderbot.core.json_utils import dumps
from orderbot.core.utils import local_now
from orderbot.dispatch.clock import Clock, SystemClock
from orderbot.dispatch.scheduler import DispatchScheduler
from orderbot.monitoring.keepalive import KeepAlive
from orderbot.monitoring.metrics import BotMetrics, BotStats
from orderbot.monitoring.status import StatusBoard
from orderbot.monitoring.status_server import start_status_server
from orderbot.state.persistence import PersistenceManager
from orderbot.transport.base import BotStatus, InboundMessage, Transport

log = logging.getLogger("orderbot")

UNHEALTHY_STATUSES = frozenset({BotStatus.AUTH_FAILED, BotStatus.ERROR})


class OrderBot:
    """
    Usage:
        bot = OrderBot(Settings.load(), GatewayTransport(cfg.gateway_config()))
        await bot.start()
        ...
        await bot.stop()
    """

    def __init__(
        self,
        settings: Settings,
        transport: Transport,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
        metrics: Optional[BotMetrics] = None,
        serve_status: bool = True,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.clock = clock or SystemClock()
        self.metrics = metrics or BotMetrics()
        self.stats = BotStats()
        self.status_board = StatusBoard(settings.service_name)
        self.serve_status = serve_status

        self.store_lock = asyncio.Lock()
        self.persistence = PersistenceManager(settings.persistence_config(), self.store_lock, self.metrics)
        self.scheduler = DispatchScheduler(
            transport,
            settings.scheduler_config(),
            clock=self.clock,
            sleep=sleep,
            rng=rng,
            metrics=self.metrics,
            stats=self.stats,
        )
        self.dispatcher = CommandDispatcher(
            self.persistence,
            self.scheduler,
            settings.dispatcher_config(),
            status_board=self.status_board,
            metrics=self.metrics,
            stats=self.stats,
        )

        self._queue: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._accepting = False
        self._worker: Optional[asyncio.Task] = None
        self._ready_task: Optional[asyncio.Task] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._keepalive: Optional[KeepAlive] = None

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """
        Load state, start background loops and the status server, then the
        transport.

        Raises:
            PersistenceError: the snapshot exists but cannot be read
        """
        store = await self.persistence.load_or_init(clock=self.clock.now)
        self.persistence.start()

        if self.serve_status:
            self._server = await start_status_server(
                self,
                self.metrics,
                host=self.settings.status_host,
                port=self.settings.status_port,
                auth_token=self.settings.status_token,
            )
        if self.settings.keepalive_enabled:
            self._keepalive = KeepAlive(
                self.settings.resolve_keepalive_url(),
                interval_sec=self.settings.keepalive_interval_sec,
            )
            self._keepalive.start()

        self._accepting = True
        self._worker = asyncio.create_task(self._worker_loop(), name="inbound-worker")
        self.transport.on_inbound_message(self.handle_inbound)
        self.transport.on_state_change(self.handle_state)
        await self.transport.start()

        log.info(dumps({
            "event": "bot_started",
            "orders": len(store),
            "active": store.active_count,
            "profile": self.settings.profile,
        }))

    async def stop(self) -> None:
        """Stop intake, persist, then tear down loops, transport and server."""
        self._accepting = False
        for task in (self._worker, self._ready_task):
            if task and not task.done():
                task.cancel()
        await asyncio.gather(
            *(t for t in (self._worker, self._ready_task) if t), return_exceptions=True
        )
        self._worker = None
        self._ready_task = None

        await self.persistence.stop()
        if self._keepalive:
            await self._keepalive.stop()
            self._keepalive = None
        await self.transport.stop()
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        log.info(dumps({"event": "bot_stopped", "uptime_sec": self.stats.uptime_sec}))

    # ========== Transport callbacks ==========

    async def handle_inbound(self, msg: InboundMessage) -> None:
        if not self._accepting:
            return
        self.stats.messages_received += 1
        self.stats.touch()
        self.metrics.messages_received.inc()
        self._queue.put_nowait(msg)

    async def handle_state(self, status: BotStatus) -> None:
        if not self.status_board.set_status(status):
            return
        level = logging.WARNING if status in UNHEALTHY_STATUSES else logging.INFO
        log.log(level, dumps({"event": "bot_status", "status": status.value}))
        if status is BotStatus.CONNECTED:
            # Announcing waits on send jitter; keep the transport loop free.
            if self._ready_task and not self._ready_task.done():
                self._ready_task.cancel()
            self._ready_task = asyncio.create_task(self.on_ready(), name="ready-announce")
        elif status is BotStatus.DISCONNECTED:
            self.status_board.set_group(None)

    async def on_ready(self) -> Optional[str]:
        """Re-resolve the target group and announce the connection there."""
        cfg = self.settings
        address = await self.transport.resolve_group_address(cfg.orders_keyword, cfg.org_keyword)
        self.status_board.set_group(address)
        if address is None:
            log.warning(dumps({
                "event": "group_not_found",
                "keywords": [cfg.orders_keyword, cfg.org_keyword],
            }))
            return None
        log.info(dumps({"event": "group_resolved", "address": address}))
        await self.scheduler.enqueue_send(address, connected_announcement(cfg.service_name, self.clock.now()))
        return address

    # ========== Worker ==========

    async def _worker_loop(self) -> None:
        while True:
            msg = await self._queue.get()
            try:
                await self.dispatcher.handle(msg)
            except Exception as exc:
                self.stats.errors += 1
                self.metrics.errors.labels(component="worker").inc()
                log.error(dumps({"event": "worker_error", "err": str(exc)}))
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    # ========== Status surface ==========

    async def _summary(self) -> Dict[str, Any]:
        store = self.persistence.store
        if store is None:
            return {"total": 0, "active": 0, "byStatus": {}}
        async with self.store_lock:
            return store.summary()

    async def status_payload(self) -> Dict[str, Any]:
        summary = await self._summary()
        return {
            **self.status_board.snapshot(),
            "uptime": self.stats.uptime_sec,
            "stats": self.stats.to_dict(),
            "messagesInHour": self.scheduler.messages_in_hour,
            "orders": summary["total"],
            "activeOrders": summary["active"],
            "timestamp": local_now().isoformat(),
        }

    async def stats_payload(self) -> Dict[str, Any]:
        return {
            **(await self._summary()),
            "scheduler": self.scheduler.stats(),
            "persistence": self.persistence.get_stats(),
            "system": {
                "uptime": self.stats.uptime_sec,
                "pid": os.getpid(),
                "python": platform.python_version(),
                "platform": platform.system(),
            },
        }

    def health_payload(self) -> Dict[str, Any]:
        status = self.status_board.status
        return {
            "healthy": status not in UNHEALTHY_STATUSES,
            "status": status.value,
            "uptime": self.stats.uptime_sec,
            "timestamp": local_now().isoformat(),
        }
