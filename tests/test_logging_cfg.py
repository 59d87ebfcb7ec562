"""
Tests for structured logging helpers.
"""

import logging

import orjson

from orderbot.infra import JsonFormatter, ThrottledFilter, build_logger, log_event


def _record(msg, level=logging.WARNING):
    return logging.LogRecord("orderbot.test", level, __file__, 1, msg, None, None)


class TestThrottledFilter:

    def test_repeated_suppression_throttled_per_key(self):
        f = ThrottledFilter(cooldown_sec=60.0)
        same = '{"event": "send_suppressed", "reason": "rate_limited", "address": "g1"}'
        other = '{"event": "send_suppressed", "reason": "rate_limited", "address": "g2"}'

        assert f.filter(_record(same)) is True
        assert f.filter(_record(same)) is False
        assert f.filter(_record(other)) is True

    def test_unlisted_events_and_plain_text_pass(self):
        f = ThrottledFilter(cooldown_sec=60.0)
        for _ in range(3):
            assert f.filter(_record('{"event": "order_created", "order_id": "001"}')) is True
            assert f.filter(_record("plain message")) is True


def test_json_formatter_output():
    line = JsonFormatter().format(_record("hola", logging.INFO))
    payload = orjson.loads(line)
    assert payload["level"] == "INFO"
    assert payload["msg"] == "hola"
    assert payload["name"] == "orderbot.test"


def test_build_logger_is_idempotent(tmp_path):
    name = "orderbot_test_logger"
    first = build_logger(name, file_path=str(tmp_path / "bot.log"), async_file=False)
    second = build_logger(name, level=logging.DEBUG, file_path=str(tmp_path / "bot.log"), async_file=False)

    assert first is second
    assert len(second.handlers) == 2
    assert all(h.level == logging.DEBUG for h in second.handlers)
    for handler in list(second.handlers):
        handler.close()
        second.removeHandler(handler)


def test_log_event_emits_json(caplog):
    logger = logging.getLogger("orderbot_test_events")
    with caplog.at_level(logging.INFO, logger="orderbot_test_events"):
        log_event(logger, "order_created", order_id="001", actor="Ana")

    payload = orjson.loads(caplog.records[-1].getMessage())
    assert payload == {"event": "order_created", "order_id": "001", "actor": "Ana"}
