# portfolio_engine/schemas/__init__.py
"""
Pydantic schemas for input validation and result serialization.

This package contains:
- validators: Record collection validation, lot method coercion
- valuation: Serializable views of valuation results

Usage:
    from portfolio_engine.schemas import HoldingsResponse, validate_records
"""

from portfolio_engine.schemas.validators import (
    coerce_lot_method,
    normalize_currency,
    validate_records,
)
from portfolio_engine.schemas.valuation import (
    SymbolDetail,
    LotDetail,
    HoldingResponse,
    HoldingsResponse,
    PortfolioMetricsResponse,
    PortfolioContributionResponse,
    ConsolidatedHoldingResponse,
    HistoryPointResponse,
    PortfolioHistoryResponse,
)

__all__ = [
    # Validators
    "coerce_lot_method",
    "normalize_currency",
    "validate_records",
    # Valuation
    "SymbolDetail",
    "LotDetail",
    "HoldingResponse",
    "HoldingsResponse",
    "PortfolioMetricsResponse",
    "PortfolioContributionResponse",
    "ConsolidatedHoldingResponse",
    "HistoryPointResponse",
    "PortfolioHistoryResponse",
]
