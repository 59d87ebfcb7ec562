"""
Monitoring: Prometheus collectors, human-facing counters, status board,
HTTP status server and keep-alive pinger.
"""

from orderbot.monitoring.keepalive import KeepAlive
from orderbot.monitoring.metrics import BotMetrics, BotStats
from orderbot.monitoring.status import StatusBoard
from orderbot.monitoring.status_server import StatusSource, start_status_server

__all__ = [
    "BotMetrics",
    "BotStats",
    "KeepAlive",
    "StatusBoard",
    "StatusSource",
    "start_status_server",
]
