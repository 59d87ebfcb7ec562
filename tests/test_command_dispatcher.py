"""
Tests for CommandDispatcher - chat commands end to end.

Tests cover:
- Group gating and prefix handling
- Order creation, listing, detail and status changes
- Admin-only status changes and customer notification
- Error replies (usage, permission, invalid status, not found, unknown)
- Unexpected failures answered with a generic reply
"""

import asyncio

import pytest
import pytest_asyncio

from orderbot.commands import CommandDispatcher, DispatcherConfig, parse_command
from orderbot.commands import replies
from orderbot.dispatch import DispatchScheduler, SchedulerConfig
from orderbot.monitoring.metrics import BotMetrics, BotStats
from orderbot.monitoring.status import StatusBoard
from orderbot.orders import OrderStatus
from orderbot.state import PersistenceConfig, PersistenceManager
from orderbot.transport.base import BotStatus, InboundMessage

GROUP = "120363-pedidos@g.us"
ANA = "34600111222@c.us"
LUIS = "34600999888@c.us"


def msg(text, sender=ANA, name="Ana", admin=False, group_name="Pedidos DAATCS Taller", is_group=True):
    return InboundMessage(
        address=GROUP,
        sender_id=sender,
        sender_display_name=name,
        text=text,
        is_group=is_group,
        group_name=group_name,
        sender_is_admin=admin,
    )


def admin(text):
    return msg(text, sender=LUIS, name="Luis", admin=True)


@pytest_asyncio.fixture
async def bot(tmp_path, transport, fake_clock, sleeper, rng):
    metrics, stats = BotMetrics(), BotStats()
    persistence = PersistenceManager(
        PersistenceConfig(snapshot_path=str(tmp_path / "pedidos.json")), asyncio.Lock(), metrics
    )
    await persistence.load_or_init(clock=fake_clock.now)
    scheduler = DispatchScheduler(
        transport,
        SchedulerConfig(hourly_cap=100),
        clock=fake_clock,
        sleep=sleeper,
        rng=rng,
        metrics=metrics,
        stats=stats,
    )
    board = StatusBoard()
    board.set_status(BotStatus.CONNECTED)
    board.set_group(GROUP)
    dispatcher = CommandDispatcher(
        persistence, scheduler, DispatcherConfig(), status_board=board, metrics=metrics, stats=stats
    )
    return dispatcher


def texts_to(transport, address):
    return [text for addr, text in transport.sent if addr == address]


class TestParser:
    """Prefix and argument splitting."""

    @pytest.mark.parametrize("text", ["/nuevo Camiseta azul", ".nuevo Camiseta azul", "!NUEVO  Camiseta   azul"])
    def test_prefixes(self, text):
        cmd = parse_command(text)
        assert cmd.name == "nuevo"
        assert cmd.args == ("Camiseta", "azul")

    def test_rest_keeps_line_breaks_and_spacing(self):
        cmd = parse_command("/nuevo  Camiseta M\nTalla:   L")
        assert cmd.args == ("Camiseta", "M", "Talla:", "L")
        assert cmd.rest == "Camiseta M\nTalla:   L"
        assert cmd.rest_from(2) == "Talla: L"

    def test_plain_text_is_not_a_command(self):
        assert parse_command("hola a todos") is None

    def test_bare_prefix(self):
        assert parse_command("/ ").name == ""


class TestGating:
    """Only the target group is served."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"is_group": False, "group_name": ""},
        {"group_name": "Familia"},
        {"group_name": "Pedidos varios"},
        {"group_name": "DAATCS general"},
    ])
    async def test_other_chats_ignored(self, bot, transport, kwargs):
        assert await bot.handle(msg("/ayuda", **kwargs)) is None
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_group_match_is_case_insensitive(self, bot, transport):
        assert await bot.handle(msg("/ayuda", group_name="PEDIDOS - daatcs")) == "ayuda"
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_chatter_without_prefix_ignored(self, bot, transport):
        assert await bot.handle(msg("buenos días")) is None
        assert transport.sent == []


class TestOrderScenario:
    """Create, advance and inspect one order."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, bot, transport, tmp_path):
        assert await bot.handle(msg("/nuevo Camiseta M azul")) == "nuevo"
        created = texts_to(transport, GROUP)[-1]
        assert "PEDIDO CREADO EXITOSAMENTE" in created
        assert "#001" in created
        assert "PENDIENTE" in created
        assert '"id": "001"' in (tmp_path / "pedidos.json").read_text(encoding="utf-8")

        assert await bot.handle(admin("/estado 001 confirmado")) == "estado"
        assert "ESTADO ACTUALIZADO" in texts_to(transport, GROUP)[-1]
        notice = texts_to(transport, ANA)
        assert len(notice) == 1
        assert "ACTUALIZACIÓN DE PEDIDO" in notice[0]
        assert "CONFIRMADO" in notice[0]

        await bot.handle(admin("/estado 1 entregado"))
        assert bot.store.active_count == 0

        await bot.handle(admin("/estado #001 proceso"))
        order = bot.store.get("001")
        assert order.status is OrderStatus.PROCESO
        assert [h.status.value for h in order.history] == ["pendiente", "confirmado", "entregado", "proceso"]
        assert order.history[-1].actor == "Luis"
        assert bot.store.active_count == 1
        assert len(texts_to(transport, ANA)) == 3

    @pytest.mark.asyncio
    async def test_group_confirmation_precedes_customer_notice(self, bot, transport):
        await bot.handle(msg("/nuevo Taza"))
        transport.sent.clear()

        await bot.handle(admin("/estado 001 listo"))

        assert [addr for addr, _ in transport.sent] == [GROUP, ANA]

    @pytest.mark.asyncio
    async def test_alias_pedido(self, bot):
        assert await bot.handle(msg("!pedido Gorra negra")) == "nuevo"
        assert bot.store.get("001").description == "Gorra negra"
        assert bot.store.get("001").customer_contact == ANA


class TestErrorReplies:
    """Domain errors become chat replies."""

    @pytest.mark.asyncio
    async def test_nuevo_without_description(self, bot, transport):
        await bot.handle(msg("/nuevo"))
        assert texts_to(transport, GROUP) == [replies.USAGE_NUEVO]
        assert len(bot.store) == 0

    @pytest.mark.asyncio
    async def test_nuevo_keeps_multiline_description(self, bot):
        await bot.handle(msg("/nuevo 2 camisetas\nTalla M  y L"))
        assert bot.store.get("001").description == "2 camisetas\nTalla M  y L"

    @pytest.mark.asyncio
    async def test_estado_missing_args(self, bot, transport):
        await bot.handle(admin("/estado 001"))
        assert texts_to(transport, GROUP) == [replies.USAGE_ESTADO]

    @pytest.mark.asyncio
    async def test_estado_requires_admin(self, bot, transport):
        await bot.handle(msg("/nuevo Taza"))
        await bot.handle(msg("/estado 001 listo"))

        assert texts_to(transport, GROUP)[-1] == replies.PERMISSION_DENIED
        assert bot.store.get("001").status is OrderStatus.PENDIENTE

    @pytest.mark.asyncio
    async def test_invalid_status_lists_valid_values(self, bot, transport):
        await bot.handle(msg("/nuevo Taza"))
        await bot.handle(admin("/estado 001 volando"))

        reply = texts_to(transport, GROUP)[-1]
        assert "Estado inválido" in reply
        assert "pendiente, confirmado, proceso, diseño" in reply
        assert texts_to(transport, ANA) == []

    @pytest.mark.asyncio
    async def test_unknown_order(self, bot, transport):
        await bot.handle(admin("/estado 999 listo"))
        assert texts_to(transport, GROUP) == [replies.not_found("999")]

    @pytest.mark.asyncio
    async def test_info_requires_id(self, bot, transport):
        await bot.handle(msg("/info"))
        assert texts_to(transport, GROUP) == [replies.USAGE_INFO]

    @pytest.mark.asyncio
    async def test_unrecognized_command(self, bot, transport):
        assert await bot.handle(msg("/borrar 001")) is None
        assert texts_to(transport, GROUP) == [replies.unrecognized("borrar")]

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_generic_reply(self, bot, transport, monkeypatch):
        def boom():
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(bot.store, "list_active", boom)

        assert await bot.handle(msg("/lista")) == "lista"
        assert texts_to(transport, GROUP) == [replies.COMMAND_FAILED]
        assert bot.bot_stats.errors == 1
        assert bot.metrics.get_registry().get_sample_value("errors_total", {"component": "dispatcher"}) == 1


class TestReadCommands:
    """lista / info / stats / salud / ayuda."""

    @pytest.mark.asyncio
    async def test_list_truncates_to_ten(self, bot, transport):
        for i in range(12):
            await bot.handle(msg(f"/nuevo Pedido {i}"))
        transport.sent.clear()

        await bot.handle(msg(".pedidos"))

        reply = texts_to(transport, GROUP)[0]
        assert "Mostrando 10 de 12 pedidos activos" in reply
        assert reply.count("*#0") == 10

    @pytest.mark.asyncio
    async def test_empty_list(self, bot, transport):
        await bot.handle(msg("/lista"))
        assert "No hay pedidos activos" in texts_to(transport, GROUP)[0]

    @pytest.mark.asyncio
    async def test_info_shows_latest_five_history_entries(self, bot, transport):
        await bot.handle(msg("/nuevo Camiseta"))
        for status in ("confirmado", "proceso", "diseño", "produccion", "control", "listo"):
            await bot.handle(admin(f"/estado 001 {status}"))
        transport.sent.clear()

        await bot.handle(msg("/info 1"))

        reply = texts_to(transport, GROUP)[0]
        history = reply.split("HISTORIAL DE ESTADOS:*\n", 1)[1]
        assert history.count("   👤 ") == 5
        assert history.index("LISTO") < history.index("CONTROL")
        assert "PENDIENTE" not in history

    @pytest.mark.asyncio
    async def test_stats_reports_counts(self, bot, transport):
        await bot.handle(msg("/nuevo A"))
        await bot.handle(msg("/nuevo B"))
        await bot.handle(admin("/estado 002 cancelado"))
        transport.sent.clear()

        await bot.handle(msg("/estadisticas"))

        reply = texts_to(transport, GROUP)[0]
        assert "• Total: 2" in reply
        assert "• Activos: 1" in reply
        assert "• Cancelados: 1" in reply
        assert "connected" in reply

    @pytest.mark.asyncio
    async def test_health(self, bot, transport):
        await bot.handle(msg("/status"))
        reply = texts_to(transport, GROUP)[0]
        assert "ESTADO DE SALUD" in reply
        assert "Conectado" in reply
        assert "6:00 - 22:00" in reply

    @pytest.mark.asyncio
    async def test_help_counts_command(self, bot, transport):
        await bot.handle(msg("/help"))
        assert "SISTEMA DE PEDIDOS" in texts_to(transport, GROUP)[0]
        assert bot.bot_stats.commands_executed == 1
        assert bot.metrics.get_registry().get_sample_value("commands_total", {"command": "ayuda"}) == 1


class TestBestEffortNotification:
    """A customer notice that cannot go out never fails the command."""

    @pytest.mark.asyncio
    async def test_rate_limited_notice_is_swallowed(self, bot, transport):
        bot.scheduler.config.hourly_cap = 2
        await bot.handle(msg("/nuevo Taza"))

        assert await bot.handle(admin("/estado 001 listo")) == "estado"

        assert texts_to(transport, ANA) == []
        assert bot.store.get("001").status is OrderStatus.LISTO
        assert bot.persistence.dirty is False
