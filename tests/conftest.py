# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Record factories (transactions, quotes, FX snapshots)
- Sample symbols
- The reference lot sequence used across lot-method tests
"""

import itertools
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

import pytest

from portfolio_engine.models import (
    AssetType,
    FxRateSnapshot,
    QuoteSnapshot,
    Symbol,
    Transaction,
    TransactionType,
)
from portfolio_engine.utils.context import clear_correlation_id


# =============================================================================
# CONTEXT
# =============================================================================

@pytest.fixture(autouse=True)
def _reset_correlation_id():
    """Keep correlation IDs from leaking between tests."""
    clear_correlation_id()
    yield
    clear_correlation_id()


# =============================================================================
# RECORD FACTORIES
# =============================================================================

@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """
    Factory for transactions.

    Usage:
        make_transaction("BUY", 10, 100, date(2024, 1, 1))
    """
    counter = itertools.count(1)

    def _make(
            txn_type: TransactionType | str,
            quantity,
            unit_price,
            trade_date: date | datetime,
            symbol_id: str | None = "sym-aapl",
            portfolio_id: str = "p-1",
            fee=0,
            fx_rate=1,
            trade_currency: str = "USD",
    ) -> Transaction:
        return Transaction(
            id=f"t-{next(counter)}",
            portfolio_id=portfolio_id,
            symbol_id=symbol_id,
            type=TransactionType(txn_type),
            quantity=Decimal(str(quantity)),
            unit_price=Decimal(str(unit_price)),
            fee=Decimal(str(fee)),
            fx_rate=Decimal(str(fx_rate)),
            trade_currency=trade_currency,
            trade_date=trade_date,
        )

    return _make


@pytest.fixture
def make_quote() -> Callable[..., QuoteSnapshot]:
    def _make(price, asof: date | datetime | None, symbol_id: str = "sym-aapl") -> QuoteSnapshot:
        return QuoteSnapshot(symbol_id=symbol_id, price=Decimal(str(price)), asof=asof)

    return _make


@pytest.fixture
def make_fx() -> Callable[..., FxRateSnapshot]:
    def _make(base: str, quote: str, rate, asof: date | datetime | None = None) -> FxRateSnapshot:
        return FxRateSnapshot(
            base_currency=base,
            quote_currency=quote,
            rate=Decimal(str(rate)),
            asof=asof,
        )

    return _make


# =============================================================================
# SYMBOLS
# =============================================================================

@pytest.fixture
def aapl() -> Symbol:
    """Apple stock, quoted in USD."""
    return Symbol(
        id="sym-aapl",
        ticker="AAPL",
        name="Apple Inc.",
        asset_type=AssetType.EQUITY,
        exchange="NASDAQ",
        quote_currency="USD",
    )


@pytest.fixture
def msft() -> Symbol:
    """Microsoft stock, quoted in USD."""
    return Symbol(
        id="sym-msft",
        ticker="MSFT",
        name="Microsoft Corporation",
        asset_type=AssetType.EQUITY,
        exchange="NASDAQ",
        quote_currency="USD",
    )


@pytest.fixture
def sap() -> Symbol:
    """SAP, quoted in EUR."""
    return Symbol(
        id="sym-sap",
        ticker="SAP",
        name="SAP SE",
        asset_type=AssetType.EQUITY,
        exchange="XETRA",
        quote_currency="EUR",
    )


# =============================================================================
# REFERENCE SEQUENCES
# =============================================================================

@pytest.fixture
def lot_sequence(make_transaction) -> list[Transaction]:
    """
    BUY 10@100, BUY 5@120, SELL 8@150, BUY 5@90.

    Remaining average cost:
        FIFO 104.1666..., LIFO 95.8333..., HIFO 95.8333..., AVERAGE 99.7222...
    """
    return [
        make_transaction("BUY", 10, 100, date(2024, 1, 1)),
        make_transaction("BUY", 5, 120, date(2024, 2, 1)),
        make_transaction("SELL", 8, 150, date(2024, 3, 1)),
        make_transaction("BUY", 5, 90, date(2024, 4, 1)),
    ]
