# portfolio_engine/utils/context.py
"""
Calculation context for the Portfolio Engine.

A correlation ID ties together every log line produced while one
valuation runs. The embedding application may set one before calling
the engine (e.g. from an X-Correlation-ID header); otherwise each
ValuationService call opens a scope that generates one.

Scopes nest: an inner scope reuses the ID already in force, and leaving
the outermost scope restores whatever was set before it.

Usage:
    from portfolio_engine.utils.context import correlation_scope

    with correlation_scope("batch-2024-06-30") as correlation_id:
        service.get_holdings(...)
"""

import functools
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    """Generate a fresh correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    """Correlation ID of the current context, or None."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """
    Run a block under a correlation ID.

    Args:
        correlation_id: ID to use. If None, the ID already in force is
                        kept, or a new one is generated.

    Yields:
        The correlation ID active inside the block
    """
    active = correlation_id or get_correlation_id() or new_correlation_id()
    token = _correlation_id_var.set(active)
    try:
        yield active
    finally:
        _correlation_id_var.reset(token)


def correlated(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run the wrapped call inside correlation_scope()."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with correlation_scope():
            return func(*args, **kwargs)

    return wrapper
