# portfolio_engine/__init__.py
"""
Portfolio valuation and lot-accounting engine.

Usage:
    from portfolio_engine import ValuationService, Transaction, LotMethod

    service = ValuationService()
    metrics = service.get_portfolio_metrics("p-1", transactions, symbols, quotes)
"""

__version__ = "0.1.0"

from portfolio_engine.models import (
    AssetType,
    FxRateSnapshot,
    HistoryOptions,
    LotMethod,
    PortfolioRef,
    QuoteSnapshot,
    Symbol,
    Transaction,
    TransactionType,
)
from portfolio_engine.services.valuation import ValuationService

__all__ = [
    "__version__",
    "ValuationService",
    "AssetType",
    "FxRateSnapshot",
    "HistoryOptions",
    "LotMethod",
    "PortfolioRef",
    "QuoteSnapshot",
    "Symbol",
    "Transaction",
    "TransactionType",
]
