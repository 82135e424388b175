# portfolio_engine/utils/logging.py
"""
Logging setup for the Portfolio Engine.

Engine modules log through logging.getLogger(__name__) and never
configure handlers themselves. An embedding application calls
setup_logging() once at startup to get:

- One stdout handler on the root logger
- Human-readable text lines or one JSON object per line
- The current correlation ID on every record (see utils.context)

Text line layout:
    2024-06-30 12:00:00 | INFO     | 1f0c... | portfolio_engine.services.valuation.service | Computed 4 holdings ...

What the engine logs:
    DEBUG   - FX or price fallbacks, lot overdrafts, history ranges
    INFO    - One summary line per ValuationService call
    WARNING - Transactions skipped because their symbol is unknown

Environment Configuration:
    LOG_LEVEL=DEBUG
    LOG_FORMAT=json
"""

import json
import logging
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, TextIO

from portfolio_engine.config import settings
from portfolio_engine.utils.context import get_correlation_id

# =============================================================================
# CONSTANTS
# =============================================================================

ENGINE_LOGGER = "portfolio_engine"

DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "no-correlation-id"

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"message", "asctime", "correlation_id"}


# =============================================================================
# FILTER
# =============================================================================

class CorrelationIdFilter(logging.Filter):
    """Stamps each record with the active correlation ID (%(correlation_id)s)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


# =============================================================================
# JSON FORMATTER
# =============================================================================

def _jsonable(value: Any) -> Any:
    """Make an extra= value JSON friendly. Decimals keep their exact digits."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    {
        "timestamp": "2024-06-30T12:00:00.123456+00:00",
        "level": "WARNING",
        "logger": "portfolio_engine.services.valuation.calculators",
        "correlation_id": "batch-7",
        "message": "Symbol sym-x not found for portfolio p-1, skipping",
        "extra": {"portfolio_id": "p-1"}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry)


# =============================================================================
# SETUP
# =============================================================================

def parse_log_level(name: str) -> int:
    """
    Translate a level name ("debug", "WARN", ...) to its logging constant.

    Raises:
        ValueError: If name is not a known level
    """
    levels = logging.getLevelNamesMapping()
    key = name.strip().upper()
    if key not in levels:
        raise ValueError(
            f"Invalid log level: '{name}'. Valid levels are: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    return levels[key]


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        stream: TextIO | None = None,
) -> None:
    """
    Configure the root logger for an application embedding the engine.

    Args:
        level: Level name; defaults to settings.log_level
        log_format: "text" or "json"; defaults to settings.log_format
        stream: Output stream; defaults to sys.stdout

    Raises:
        ValueError: If level is not a known level name
    """
    level_name = level or settings.log_level
    numeric_level = parse_log_level(level_name)
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    logging.getLogger(ENGINE_LOGGER).info(
        f"Logging configured: level={level_name}, format={format_type}",
        extra={"log_config": {"level": level_name, "format": format_type}},
    )


def get_logger(name: str) -> logging.Logger:
    """Named logger; records get a correlation ID once setup_logging() ran."""
    return logging.getLogger(name)
