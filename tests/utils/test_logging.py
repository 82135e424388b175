# tests/utils/test_logging.py
"""
Tests for logging configuration.
"""

import io
import json
import logging
import sys
from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.utils.context import set_correlation_id
from portfolio_engine.utils.logging import (
    NO_CORRELATION_ID,
    CorrelationIdFilter,
    JsonFormatter,
    get_logger,
    parse_log_level,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    """setup_logging() replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("portfolio_engine.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestParseLogLevel:
    """Tests for parse_log_level()."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("DEBUG", logging.DEBUG),
            ("info", logging.INFO),
            (" warn ", logging.WARNING),
            ("Error", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ],
    )
    def test_valid(self, name, expected):
        assert parse_log_level(name) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            parse_log_level("VERBOSE")


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self):
        record = _record("Computed 3 holdings", correlation_id="req-1")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "portfolio_engine.test"
        assert entry["correlation_id"] == "req-1"
        assert entry["message"] == "Computed 3 holdings"
        assert "timestamp" in entry

    def test_extra_fields(self):
        record = _record(portfolio_id="p-1", total=Decimal("1800.50"), asof=date(2024, 6, 30), payload=object())

        entry = json.loads(JsonFormatter().format(record))

        assert entry["extra"]["portfolio_id"] == "p-1"
        assert entry["extra"]["total"] == "1800.50"
        assert entry["extra"]["asof"] == "2024-06-30"
        assert isinstance(entry["extra"]["payload"], str)

    def test_placeholder_without_filter(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["correlation_id"] == NO_CORRELATION_ID

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "portfolio_engine.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        entry = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in entry["exception"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_text_format(self, restore_root_logger):
        setup_logging(level="DEBUG", log_format="text")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert not isinstance(handler.formatter, JsonFormatter)
        assert any(isinstance(f, CorrelationIdFilter) for f in handler.filters)

    def test_json_format(self, restore_root_logger):
        setup_logging(level="WARNING", log_format="JSON")

        root = restore_root_logger
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_text_output_includes_correlation_id(self, restore_root_logger, capsys):
        setup_logging(level="INFO", log_format="text")
        set_correlation_id("corr-9")

        get_logger("portfolio_engine.test").info("valuation done")

        out = capsys.readouterr().out
        assert "corr-9" in out
        assert "valuation done" in out

    def test_invalid_level(self, restore_root_logger):
        with pytest.raises(ValueError):
            setup_logging(level="LOUD")


def test_get_logger_returns_named_logger():
    assert get_logger("portfolio_engine.x").name == "portfolio_engine.x"


def test_setup_logging_custom_stream(restore_root_logger):
    stream = io.StringIO()
    setup_logging(level="INFO", log_format="json", stream=stream)

    get_logger("portfolio_engine.test").warning("skipped", extra={"symbol_id": "sym-x"})

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert lines[-1]["message"] == "skipped"
    assert lines[-1]["extra"] == {"symbol_id": "sym-x"}
    assert lines[0]["extra"]["log_config"] == {"level": "INFO", "format": "json"}
