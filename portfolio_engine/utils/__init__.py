# portfolio_engine/utils/__init__.py
"""
Utility modules for the Portfolio Engine.

This package contains cross-cutting utilities used throughout the engine:
- logging: Logging configuration and setup with correlation ID support
- context: Context management for correlation IDs
- date_utils: Timestamp normalisation, day ranges, display labels
- numbers: Decimal coercion, safe division, rounding

Usage:
    from portfolio_engine.utils import setup_logging, get_logger
    from portfolio_engine.utils import get_correlation_id, set_correlation_id
    from portfolio_engine.utils.date_utils import iter_days
"""

from portfolio_engine.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    correlation_scope,
    correlated,
)
from portfolio_engine.utils.logging import setup_logging, get_logger

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "correlation_scope",
    "correlated",
]
