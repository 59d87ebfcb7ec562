"""
Entry point: load settings, configure logging, run the bot until a signal.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from orderbot.app import OrderBot
from orderbot.config.config import Settings
from orderbot.config.config_validator import validate_and_log
from orderbot.errors import PersistenceError
from orderbot.infra.logging_cfg import build_logger, log_event
from orderbot.transport.gateway import GatewayTransport


async def main() -> None:
    cfg = Settings.load()
    log = build_logger("orderbot", level=cfg.log_level, file_path=cfg.log_file)

    if not validate_and_log(cfg, log):
        log.error("Configuration validation failed, exiting")
        sys.exit(1)
    log_event(log, "startup", **cfg.dump())

    bot = OrderBot(cfg, GatewayTransport(cfg.gateway_config()))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    try:
        await bot.start()
    except PersistenceError as exc:
        log_event(log, "startup_aborted", level=logging.ERROR, err=str(exc))
        await bot.stop()
        sys.exit(1)

    try:
        await stop_event.wait()
        log.info("Shutdown signal received, cleaning up...")
    finally:
        await bot.stop()
        log.info("Shutdown complete")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBot stopped by user")


if __name__ == "__main__":
    run()
