"""
Reply text rendering.

Pure functions from domain objects to chat text (WhatsApp-style markdown).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Sequence

from orderbot.core.utils import format_display, format_uptime
from orderbot.orders.models import STATUS_EMOJI, Order, OrderStatus


def status_emoji(status: str) -> str:
    parsed = OrderStatus.parse(status)
    return STATUS_EMOJI.get(parsed, "❓") if parsed else "❓"


def help_text(service: str, start_hour: int, end_hour: int) -> str:
    return (
        f"🤖 *BOT {service} - SISTEMA DE PEDIDOS*\n\n"
        "📝 *COMANDOS PARA CLIENTES:*\n"
        "• `/nuevo [descripción]` - Crear nuevo pedido\n"
        "• `/info [ID]` - Ver detalles de pedido\n"
        "• `/lista` - Ver pedidos activos\n\n"
        "👮 *COMANDOS PARA ADMINISTRADORES:*\n"
        "• `/estado [ID] [nuevo_estado]` - Cambiar estado\n"
        "• `/stats` - Ver estadísticas completas\n\n"
        "📊 *ESTADOS DISPONIBLES:*\n"
        "• pendiente, confirmado, proceso, diseño\n"
        "• produccion, control, listo, entregado\n"
        "• cancelado, pausado\n\n"
        "💡 *EJEMPLOS:*\n"
        "• `/nuevo Camiseta talla M color azul`\n"
        "• `/estado 001 confirmado`\n"
        "• `/info 001`\n\n"
        f"🕐 *Horario:* {start_hour}:00 - {end_hour}:00\n"
        f"🏭 *{service} - Sistema de Gestión de Pedidos*"
    )


def connected_announcement(service: str, now: datetime) -> str:
    return (
        f"🤖 *BOT {service} CONECTADO*\n\n"
        "✅ Estado: Activo\n"
        f"⏰ {format_display(now)}\n\n"
        "💡 Usa */ayuda* para ver comandos disponibles"
    )


def order_created(order: Order, service: str) -> str:
    return (
        "✅ *PEDIDO CREADO EXITOSAMENTE*\n\n"
        f"🆔 *ID:* #{order.id}\n"
        f"👤 *Cliente:* {order.customer_name}\n"
        f"📝 *Descripción:* {order.description}\n"
        f"📊 *Estado:* {order.status.value.upper()}\n"
        f"⏰ *Fecha:* {format_display(order.created_at)}\n\n"
        "💡 *Próximos pasos:*\n"
        "• Tu pedido será revisado por nuestro equipo\n"
        "• Recibirás actualizaciones del estado\n"
        f"• Usa `/info {order.id}` para ver detalles\n\n"
        f"🏭 *{service} - Tu pedido está en buenas manos*"
    )


def _truncate(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def active_orders(orders: Sequence[Order], limit: int) -> str:
    if not orders:
        return "📋 *No hay pedidos activos*\n\n💡 Usa `/nuevo [descripción]` para crear un pedido"

    lines: List[str] = ["📋 *PEDIDOS ACTIVOS*", ""]
    for order in orders[:limit]:
        lines.append(f"{STATUS_EMOJI[order.status]} *#{order.id}* - {order.customer_name}")
        lines.append(f"   📊 {order.status.value.upper()}")
        lines.append(f"   📝 {_truncate(order.description)}")
        lines.append(f"   ⏰ {format_display(order.updated_at)}")
        lines.append("")
    if len(orders) > limit:
        lines.append(f"📊 *Mostrando {limit} de {len(orders)} pedidos activos*")
    lines.append("💡 Usa `/info [ID]` para ver detalles completos")
    return "\n".join(lines)


def status_changed(order: Order, previous: OrderStatus, actor: str) -> str:
    return (
        "✅ *ESTADO ACTUALIZADO*\n\n"
        f"🆔 *Pedido:* #{order.id}\n"
        f"👤 *Cliente:* {order.customer_name}\n"
        f"📊 *Estado anterior:* {previous.value.upper()}\n"
        f"📊 *Estado nuevo:* {order.status.value.upper()}\n"
        f"👮 *Actualizado por:* {actor}\n"
        f"⏰ *Fecha:* {format_display(order.updated_at)}\n\n"
        "💡 El cliente será notificado automáticamente"
    )


def customer_notification(order: Order, service: str) -> str:
    return (
        f"🔔 *ACTUALIZACIÓN DE PEDIDO {service}*\n\n"
        f"🆔 *ID:* #{order.id}\n"
        f"📊 *Nuevo estado:* {order.status.value.upper()}\n"
        f"⏰ {format_display(order.updated_at)}\n\n"
        "💬 Para más información, contacta el grupo de pedidos"
    )


def order_info(order: Order, history_limit: int) -> str:
    lines = [
        "📋 *INFORMACIÓN COMPLETA DEL PEDIDO*",
        "",
        f"🆔 *ID:* #{order.id}",
        f"👤 *Cliente:* {order.customer_name}",
        f"📱 *Contacto:* {order.customer_contact}",
        f"📊 *Estado actual:* {order.status.value.upper()}",
        f"📝 *Descripción:* {order.description}",
        f"⏰ *Creado:* {format_display(order.created_at)}",
        f"🔄 *Última actualización:* {format_display(order.updated_at)}",
        "",
        "📊 *HISTORIAL DE ESTADOS:*",
    ]
    for entry in list(reversed(order.history))[:history_limit]:
        lines.append(f"{STATUS_EMOJI[entry.status]} {entry.status.value.upper()} - {format_display(entry.timestamp)}")
        if entry.actor:
            lines.append(f"   👤 {entry.actor}")
    return "\n".join(lines)


def stats_report(
    service: str,
    bot_stats: Dict[str, Any],
    uptime_sec: int,
    summary: Dict[str, Any],
    scheduler: Dict[str, Any],
    status: str,
) -> str:
    by_status: Dict[str, int] = summary.get("byStatus", {})
    lines = [
        f"📊 *ESTADÍSTICAS {service}*",
        "",
        f"⏰ *Tiempo activo:* {format_uptime(uptime_sec)}",
        f"📩 *Mensajes recibidos:* {bot_stats['messagesReceived']}",
        f"📤 *Mensajes enviados:* {bot_stats['messagesSent']}",
        f"🔧 *Comandos ejecutados:* {bot_stats['commandsExecuted']}",
        f"❌ *Errores:* {bot_stats['errors']}",
        "",
        "📋 *PEDIDOS:*",
        f"• Total: {summary['total']}",
        f"• Activos: {summary['active']}",
        f"• Entregados: {by_status.get(OrderStatus.ENTREGADO.value, 0)}",
        f"• Cancelados: {by_status.get(OrderStatus.CANCELADO.value, 0)}",
        "",
        "📊 *POR ESTADO:*",
    ]
    for name, count in by_status.items():
        lines.append(f"• {status_emoji(name)} {name}: {count}")
    lines += [
        "",
        f"🔋 *Estado:* {status}",
        f"📈 *Límite/hora:* {scheduler['messages_in_hour']}/{scheduler['hourly_cap']}",
    ]
    return "\n".join(lines)


def health_report(
    bot_stats: Dict[str, Any],
    uptime_sec: int,
    scheduler: Dict[str, Any],
    status: str,
    group_connected: bool,
) -> str:
    start, end = scheduler["working_hours"]
    in_hours = "🟢 En horario de servicio" if scheduler["in_working_hours"] else "🟡 Fuera de horario"
    return "\n".join([
        "🏥 *ESTADO DE SALUD DEL BOT*",
        "",
        f"✅ *Estado general:* {status}",
        f"⏰ *Tiempo activo:* {format_uptime(uptime_sec)}",
        f"📊 *Rendimiento:* {'Óptimo' if bot_stats['errors'] == 0 else 'Con errores'}",
        "",
        "📈 *Actividad última hora:*",
        f"• Mensajes enviados: {scheduler['messages_in_hour']}",
        f"• Comandos ejecutados: {bot_stats['commandsExecuted']}",
        f"• Errores registrados: {bot_stats['errors']}",
        "",
        f"🕐 *Horario de servicio:* {start}:00 - {end}:00",
        f"📱 *Grupo objetivo:* {'Conectado' if group_connected else 'Buscando...'}",
        "",
        in_hours,
    ])


USAGE_NUEVO = (
    "❌ *Formato incorrecto*\n\n"
    "📝 Uso: `/nuevo [descripción]`\n"
    "💡 Ejemplo: `/nuevo Camiseta M azul diseño personalizado`"
)
USAGE_ESTADO = (
    "❌ *Formato incorrecto*\n\n"
    "📝 Uso: `/estado [ID] [nuevo_estado]`\n"
    "💡 Ejemplo: `/estado 001 confirmado`"
)
USAGE_INFO = "❌ *ID requerido*\n\n📝 Uso: `/info [ID]`\n💡 Ejemplo: `/info 001`"
PERMISSION_DENIED = "❌ Solo administradores pueden cambiar estados de pedidos"
COMMAND_FAILED = "❌ Error ejecutando comando. Inténtalo de nuevo."


def invalid_status(valid: Sequence[str]) -> str:
    return f"❌ *Estado inválido*\n\n📊 Estados disponibles:\n{', '.join(valid)}"


def not_found(order_id: str) -> str:
    return f"❌ *Pedido no encontrado*\n\nID: {order_id}\n💡 Usa `/lista` para ver IDs válidos"


def unrecognized(name: str) -> str:
    return f"❓ Comando no reconocido: `{name}`\n💡 Usa */ayuda* para ver comandos disponibles"
