# portfolio_engine/services/valuation/__init__.py
"""
Valuation Service Package.

This package provides portfolio valuation capabilities:
- Open positions per portfolio (get_holdings)
- Portfolio totals (get_portfolio_metrics)
- Cross-portfolio positions (get_consolidated_holdings)
- Daily cost/value series for charts (get_history)

Usage:
    from portfolio_engine.services.valuation import ValuationService

    service = ValuationService()
    result = service.get_holdings("p-1", transactions, symbols, quotes, fx_snapshots)

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Internal data classes
    ├── lot_engine.py            # Lot books and lot replay
    ├── calculators.py           # Point-in-time calculators
    ├── history_calculator.py    # Daily series reconstruction
    └── service.py               # ValuationService (orchestrator)

Data Flow:
    Transactions → LotEngine (+ CurrencyConverter) → Lots
    Lots + Quotes + FX → HoldingsCalculator → Holdings
    Holdings → PortfolioMetricsAggregator → PortfolioMetrics
    Holdings per portfolio → ConsolidatedHoldingsCalculator → ConsolidatedHolding
    Transactions + Quotes → PortfolioHistoryReconstructor → PortfolioHistoryPoint
"""

# Calculators (for testing / direct usage)
from portfolio_engine.services.valuation.calculators import (
    HoldingsCalculator,
    PortfolioMetricsAggregator,
    ConsolidatedHoldingsCalculator,
)
from portfolio_engine.services.valuation.history_calculator import PortfolioHistoryReconstructor
from portfolio_engine.services.valuation.lot_engine import (
    LotEngine,
    DiscreteLotBook,
    AverageCostBook,
    create_lot_book,
    calculate_average_cost,
    calculate_current_quantity,
    calculate_realized_pl,
    calculate_unrealized_pl,
)
# Main service
from portfolio_engine.services.valuation.service import ValuationService
# Internal types (for advanced usage / testing)
from portfolio_engine.services.valuation.types import (
    Lot,
    LotConsumption,
    Holding,
    HoldingsResult,
    PortfolioMetrics,
    PortfolioContribution,
    ConsolidatedHolding,
    PortfolioHistoryPoint,
)

__all__ = [
    # Main service
    "ValuationService",

    # Data types
    "Lot",
    "LotConsumption",
    "Holding",
    "HoldingsResult",
    "PortfolioMetrics",
    "PortfolioContribution",
    "ConsolidatedHolding",
    "PortfolioHistoryPoint",

    # Calculators (for testing)
    "HoldingsCalculator",
    "PortfolioMetricsAggregator",
    "ConsolidatedHoldingsCalculator",
    "PortfolioHistoryReconstructor",

    # Lot accounting
    "LotEngine",
    "DiscreteLotBook",
    "AverageCostBook",
    "create_lot_book",
    "calculate_average_cost",
    "calculate_current_quantity",
    "calculate_realized_pl",
    "calculate_unrealized_pl",
]
