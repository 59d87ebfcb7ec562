"""
Command dispatcher: inbound chat event -> store mutation -> outbound replies.

Flow per event:
    1. Gate: group events whose name carries both keywords, nothing else
    2. Parse prefix + command name, resolve aliases
    3. Run the handler; mutations happen under the store lock and are
       committed before the lock is released
    4. Replies go out through the DispatchScheduler, never the transport

Domain errors become replies. Unexpected exceptions are logged, counted
and answered with a generic reply; nothing escapes to the worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from orderbot.commands import replies
from orderbot.commands.parser import ParsedCommand, parse_command
from orderbot.core.json_utils import dumps
from orderbot.errors import (
    InvalidStatusError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from orderbot.orders.models import OrderStatus
from orderbot.orders.store import OrderStore
from orderbot.transport.base import InboundMessage

if TYPE_CHECKING:
    from orderbot.dispatch.scheduler import DispatchScheduler
    from orderbot.monitoring.metrics import BotMetrics, BotStats
    from orderbot.monitoring.status import StatusBoard
    from orderbot.state.persistence import PersistenceManager

log = logging.getLogger("orderbot")

ALIASES: Dict[str, str] = {
    "ayuda": "ayuda",
    "help": "ayuda",
    "nuevo": "nuevo",
    "pedido": "nuevo",
    "lista": "lista",
    "pedidos": "lista",
    "estado": "estado",
    "info": "info",
    "stats": "stats",
    "estadisticas": "stats",
    "salud": "salud",
    "status": "salud",
}


@dataclass
class DispatcherConfig:
    orders_keyword: str = "pedidos"
    org_keyword: str = "daatcs"
    service_name: str = "DAATCS"
    list_limit: int = 10
    history_limit: int = 5

    log_event_callback: Optional[Callable[..., None]] = None


class UsageError(Exception):
    """Missing or malformed arguments; carries the usage text to reply with."""

    def __init__(self, usage: str) -> None:
        super().__init__(usage)
        self.usage = usage


class CommandDispatcher:
    """
    Usage:
        dispatcher = CommandDispatcher(persistence, scheduler, DispatcherConfig(), stats=stats)
        await dispatcher.handle(inbound_message)
    """

    def __init__(
        self,
        persistence: "PersistenceManager",
        scheduler: "DispatchScheduler",
        config: Optional[DispatcherConfig] = None,
        status_board: Optional["StatusBoard"] = None,
        metrics: Optional["BotMetrics"] = None,
        stats: Optional["BotStats"] = None,
    ) -> None:
        self.persistence = persistence
        self.scheduler = scheduler
        self.config = config or DispatcherConfig()
        self.status_board = status_board
        self.metrics = metrics
        self.bot_stats = stats
        self._log_event = self.config.log_event_callback or self._default_log

        self._handlers: Dict[str, Callable[[InboundMessage, ParsedCommand], Awaitable[str]]] = {
            "ayuda": self._cmd_help,
            "nuevo": self._cmd_new,
            "lista": self._cmd_list,
            "estado": self._cmd_status,
            "info": self._cmd_info,
            "stats": self._cmd_stats,
            "salud": self._cmd_health,
        }

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, dumps({"event": event, **kwargs}))

    @property
    def store(self) -> OrderStore:
        store = self.persistence.store
        if store is None:
            raise RuntimeError("order store not loaded")
        return store

    # ========== Gating ==========

    def is_target_group(self, msg: InboundMessage) -> bool:
        if not msg.is_group:
            return False
        name = msg.group_name.lower()
        return self.config.orders_keyword.lower() in name and self.config.org_keyword.lower() in name

    # ========== Entry point ==========

    async def handle(self, msg: InboundMessage) -> Optional[str]:
        """
        Process one inbound event.

        Returns:
            The canonical command name that ran, or None when the event was
            ignored (wrong chat, no prefix).
        """
        if not self.is_target_group(msg):
            return None
        cmd = parse_command(msg.text)
        if cmd is None:
            return None

        name = ALIASES.get(cmd.name)
        if name is None:
            self._log_event("command_unrecognized", command=cmd.name, sender=msg.sender_id)
            await self._reply(msg, replies.unrecognized(cmd.name))
            return None

        if self.bot_stats:
            self.bot_stats.commands_executed += 1
            self.bot_stats.touch()
        if self.metrics:
            self.metrics.commands.labels(command=name).inc()
        self._log_event("command_received", command=name, sender=msg.sender_id)

        try:
            reply = await self._handlers[name](msg, cmd)
        except UsageError as exc:
            reply = exc.usage
        except PermissionDeniedError:
            reply = replies.PERMISSION_DENIED
        except InvalidStatusError as exc:
            reply = replies.invalid_status(exc.valid)
        except NotFoundError as exc:
            reply = replies.not_found(exc.order_id)
        except ValidationError:
            reply = replies.USAGE_NUEVO
        except Exception as exc:
            log.exception("command_failed command=%s", name)
            if self.bot_stats:
                self.bot_stats.errors += 1
            if self.metrics:
                self.metrics.errors.labels(component="dispatcher").inc()
            self._log_event("command_failed", level=logging.ERROR, command=name, err=str(exc))
            reply = replies.COMMAND_FAILED

        await self._reply(msg, reply)
        return name

    # ========== Handlers ==========

    async def _cmd_help(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        start, end = self.scheduler.config.working_hours_start, self.scheduler.config.working_hours_end
        return replies.help_text(self.config.service_name, start, end)

    async def _cmd_new(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        if not cmd.args:
            raise UsageError(replies.USAGE_NUEVO)
        async with self.persistence.store_lock:
            order = self.store.create_order(cmd.rest, msg.sender_display_name, msg.sender_id)
            await self.persistence.commit(self.store)
        return replies.order_created(order, self.config.service_name)

    async def _cmd_list(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        async with self.persistence.store_lock:
            active = self.store.list_active()
        return replies.active_orders(active, self.config.list_limit)

    async def _cmd_status(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        if len(cmd.args) < 2:
            raise UsageError(replies.USAGE_ESTADO)
        if not msg.sender_is_admin:
            raise PermissionDeniedError(f"{msg.sender_id} is not a group admin")

        order_id, raw_status = cmd.args[0], cmd.rest_from(1)
        if OrderStatus.parse(raw_status) is None:
            raise InvalidStatusError(raw_status, OrderStatus.values())

        async with self.persistence.store_lock:
            previous = self.store.get(order_id).status
            order = self.store.change_status(order_id, raw_status, actor=msg.sender_display_name)
            await self.persistence.commit(self.store)
            confirmation = replies.status_changed(order, previous, msg.sender_display_name)
            notification = replies.customer_notification(order, self.config.service_name)
            contact = order.customer_contact

        # Group confirmation first, then the customer; both via the scheduler.
        await self._reply(msg, confirmation)
        await self._notify_customer(contact, order.id, notification)
        return ""

    async def _cmd_info(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        if not cmd.args:
            raise UsageError(replies.USAGE_INFO)
        async with self.persistence.store_lock:
            order = self.store.get(cmd.args[0])
            return replies.order_info(order, self.config.history_limit)

    async def _cmd_stats(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        async with self.persistence.store_lock:
            summary = self.store.summary()
        return replies.stats_report(
            self.config.service_name,
            self._bot_stats_dict(),
            self._uptime(),
            summary,
            self.scheduler.stats(),
            self._status_label(),
        )

    async def _cmd_health(self, msg: InboundMessage, cmd: ParsedCommand) -> str:
        return replies.health_report(
            self._bot_stats_dict(),
            self._uptime(),
            self.scheduler.stats(),
            self._status_label(),
            self.status_board.group_connected if self.status_board else False,
        )

    # ========== Outbound ==========

    async def _reply(self, msg: InboundMessage, text: str) -> None:
        if not text:
            return
        result = await self.scheduler.enqueue_send(msg.address, text)
        if not result.sent:
            self._log_event("reply_not_sent", address=msg.address, reason=result.reason.value)

    async def _notify_customer(self, contact: str, order_id: str, text: str) -> None:
        """Best effort: a suppressed or failed notification is only logged."""
        if not contact:
            return
        try:
            result = await self.scheduler.enqueue_send(contact, text)
        except Exception as exc:
            self._log_event("customer_notify_failed", level=logging.WARNING, order_id=order_id, err=str(exc))
            return
        if result.sent:
            self._log_event("customer_notified", order_id=order_id)
        else:
            self._log_event(
                "customer_notify_skipped",
                level=logging.WARNING,
                order_id=order_id,
                reason=result.reason.value,
            )

    # ========== Internals ==========

    def _bot_stats_dict(self) -> Dict[str, Any]:
        if self.bot_stats:
            return self.bot_stats.to_dict()
        return {"messagesReceived": 0, "messagesSent": 0, "commandsExecuted": 0, "errors": 0}

    def _uptime(self) -> int:
        return self.bot_stats.uptime_sec if self.bot_stats else 0

    def _status_label(self) -> str:
        return self.status_board.status.value if self.status_board else "unknown"
