# portfolio_engine/schemas/valuation.py
"""
Pydantic schemas for valuation results.

These schemas turn the calculators' dataclasses into serializable
responses:
- Holdings (per portfolio) and portfolio metrics
- Consolidated holdings across portfolios
- Daily history series

All schemas read from attributes, so results can be passed directly:

    HoldingsResponse.model_validate(service.get_holdings(...))
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from portfolio_engine.models import AssetType


# =============================================================================
# SYMBOL & LOT SCHEMAS
# =============================================================================

class SymbolDetail(BaseModel):
    """Instrument metadata attached to a holding."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    ticker: str
    name: str | None = None
    display_name: str = Field(..., description="Name, falling back to the ticker")
    asset_type: AssetType
    exchange: str | None = None
    quote_currency: str


class LotDetail(BaseModel):
    """A remaining acquisition lot."""

    model_config = ConfigDict(from_attributes=True)

    lot_id: int
    quantity: Decimal
    unit_cost: Decimal = Field(..., description="Cost per unit in trade currency")
    fx_rate: Decimal = Field(..., description="Trade → base rate at acquisition")
    trade_currency: str


# =============================================================================
# HOLDING SCHEMAS
# =============================================================================

class HoldingResponse(BaseModel):
    """Valuation of one symbol held in one portfolio."""

    model_config = ConfigDict(from_attributes=True)

    portfolio_id: str
    symbol_id: str
    symbol: SymbolDetail
    quantity: Decimal = Field(..., description="Units held")
    trade_currency: str = Field(..., description="Currency the symbol was traded in")
    base_currency: str = Field(..., description="Reporting currency")

    # Cost basis
    avg_cost_trade: Decimal
    avg_cost_base: Decimal = Field(
        ...,
        description="Average cost in base currency at acquisition FX rates"
    )

    # Current value
    current_price: Decimal
    current_fx_rate: Decimal
    market_value_trade: Decimal
    market_value_base: Decimal

    # P&L
    unrealized_pl: Decimal
    unrealized_pl_percent: Decimal
    price_unrealized_pl: Decimal = Field(
        ...,
        description="P&L from price movement, in base currency at today's FX"
    )
    price_unrealized_pl_percent: Decimal
    fx_unrealized_pl: Decimal = Field(
        ...,
        description="P&L from currency movement"
    )
    fx_unrealized_pl_percent: Decimal

    allocation_percent: Decimal

    # Data quality
    price_source: str = Field(
        default="quote",
        description="Price source: 'quote' or 'avg_cost' (no quote available)"
    )
    fx_rate_source: str = Field(
        default="identity",
        description="identity, direct, inverse, historical or unity"
    )
    lots: list[LotDetail] = Field(default_factory=list)


class HoldingsResponse(BaseModel):
    """Holdings of one portfolio with data quality warnings."""

    model_config = ConfigDict(from_attributes=True)

    holdings: list[HoldingResponse]
    warnings: list[str] = Field(
        default_factory=list,
        description="Symbols skipped because their metadata was missing"
    )


class PortfolioMetricsResponse(BaseModel):
    """Portfolio-level totals."""

    model_config = ConfigDict(from_attributes=True)

    portfolio_id: str
    total_equity: Decimal = Field(..., description="Total market value in base currency")
    total_cost: Decimal = Field(..., description="Total cost basis in base currency")
    total_pl: Decimal
    total_pl_percent: Decimal
    daily_pl: Decimal
    daily_pl_percent: Decimal
    daily_pl_is_estimated: bool = Field(
        default=True,
        description="True: daily P&L is a fixed share of total P&L, not a measured change"
    )
    holdings: list[HoldingResponse] = Field(default_factory=list)


# =============================================================================
# CONSOLIDATION SCHEMAS
# =============================================================================

class PortfolioContributionResponse(BaseModel):
    """One portfolio's share of a consolidated holding."""

    model_config = ConfigDict(from_attributes=True)

    portfolio_id: str
    portfolio_name: str
    quantity: Decimal
    avg_cost: Decimal
    avg_cost_trade: Decimal
    market_value: Decimal
    market_value_trade: Decimal


class ConsolidatedHoldingResponse(BaseModel):
    """One symbol summed across portfolios."""

    model_config = ConfigDict(from_attributes=True)

    symbol_id: str
    symbol: SymbolDetail
    total_quantity: Decimal
    trade_currency: str
    base_currency: str
    total_cost_basis: Decimal
    total_cost_basis_trade: Decimal
    blended_avg_cost: Decimal
    blended_avg_cost_trade: Decimal
    total_market_value: Decimal
    total_market_value_trade: Decimal
    total_unrealized_pl: Decimal
    total_unrealized_pl_percent: Decimal
    price_unrealized_pl: Decimal
    price_unrealized_pl_percent: Decimal
    fx_unrealized_pl: Decimal
    fx_unrealized_pl_percent: Decimal
    allocation_percent: Decimal
    current_price: Decimal
    current_fx_rate: Decimal = Field(
        ...,
        description="Contributors' FX rates weighted by trade-currency market value"
    )
    portfolios: list[PortfolioContributionResponse]


# =============================================================================
# HISTORY SCHEMAS
# =============================================================================

class HistoryPointResponse(BaseModel):
    """A single day of portfolio history."""

    model_config = ConfigDict(from_attributes=True)

    date: str = Field(..., description="Display label, e.g. 'Jan 5'")
    iso_date: str = Field(..., description="yyyy-mm-dd")
    cost: Decimal = Field(..., description="Cumulative net invested")
    value: Decimal = Field(..., description="Market value of open positions")


class PortfolioHistoryResponse(BaseModel):
    """Daily history series."""

    model_config = ConfigDict(from_attributes=True)

    data: list[HistoryPointResponse]
    total_points: int
