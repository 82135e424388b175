# portfolio_engine/services/valuation/types.py
"""
Internal data types for the Valuation Service.

These dataclasses are produced by the valuation calculators.
They are NOT Pydantic schemas - those are defined in
portfolio_engine/schemas/valuation.py for serialization.

Design Principles:
- Immutable where possible (frozen=True for value objects)
- Use Decimal for ALL financial values (never float)
- Optional fields use None, not sentinel values
- Warnings accumulate for data quality tracking

Type Hierarchy:
    Lot                    - One acquisition batch still held
    LotConsumption         - Quantity taken from a lot by one disposal
    Holding                - Valuation of one symbol in one portfolio
    HoldingsResult         - Holdings plus data quality warnings
    PortfolioMetrics       - Portfolio-level totals
    PortfolioContribution  - One portfolio's share of a consolidated holding
    ConsolidatedHolding    - One symbol summed across portfolios
    PortfolioHistoryPoint  - One day of the cost/value series
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from portfolio_engine.models import Symbol


# =============================================================================
# LOTS
# =============================================================================

@dataclass(frozen=True)
class Lot:
    """
    A discrete acquisition batch of a symbol.

    Attributes:
        lot_id: Stable identifier within one lot book
        quantity: Units still held (always > 0 while the lot exists)
        unit_cost: Cost per unit in trade currency
        fx_rate: Trade → base rate at acquisition
        trade_currency: Currency the lot was bought in
        acquired_at: Normalised trade timestamp (None for synthetic lots)
        transaction_id: Source transaction (None for synthetic lots)

    Note:
        Lots are never mutated. Partial consumption replaces a lot with
        a reduced copy (see with_quantity).
    """

    lot_id: int
    quantity: Decimal
    unit_cost: Decimal
    fx_rate: Decimal
    trade_currency: str
    acquired_at: datetime | None = None
    transaction_id: str | None = None

    @property
    def cost_trade(self) -> Decimal:
        return self.quantity * self.unit_cost

    @property
    def cost_base(self) -> Decimal:
        return self.quantity * self.unit_cost * self.fx_rate

    def with_quantity(self, quantity: Decimal) -> Lot:
        """Copy of this lot holding a different quantity."""
        return replace(self, quantity=quantity)


@dataclass(frozen=True)
class LotConsumption:
    """Quantity removed from one lot by a SELL or transfer-out."""

    lot_id: int
    quantity: Decimal
    unit_cost: Decimal
    fx_rate: Decimal

    @property
    def cost_trade(self) -> Decimal:
        return self.quantity * self.unit_cost

    @property
    def cost_base(self) -> Decimal:
        return self.quantity * self.unit_cost * self.fx_rate


# =============================================================================
# HOLDINGS
# =============================================================================

@dataclass
class Holding:
    """
    Valuation of one symbol held in one portfolio.

    Attributes:
        portfolio_id: Portfolio the position belongs to
        symbol_id: Symbol identifier
        symbol: Symbol metadata
        quantity: Units held (sum of remaining lots)
        trade_currency: Currency the symbol was traded in
        base_currency: Reporting currency
        avg_cost_trade: Cost-weighted average cost per unit, trade currency
        avg_cost_base: Average cost per unit in base currency, converted per
                       lot at its acquisition rate (not marked to current FX)
        current_price: Latest quote, or avg_cost_trade if no quote exists
        current_fx_rate: Trade → base rate used for market value
        market_value_trade: quantity × current_price
        market_value_base: market_value_trade × current_fx_rate
        unrealized_pl: market_value_base - quantity × avg_cost_base
        price_unrealized_pl: P/L from price movement, at today's FX
        fx_unrealized_pl: Residual P/L from currency movement
        allocation_percent: Share of the portfolio's total market value
        price_source: "quote" or "avg_cost"
        fx_rate_source: Resolution step that produced current_fx_rate,
                        or "historical" for the cost-weighted fallback
        lots: Remaining lots backing this holding

    Note:
        Percent fields are relative to the base-currency cost basis
        and are 0 when that cost basis is 0.
    """

    portfolio_id: str
    symbol_id: str
    symbol: Symbol
    quantity: Decimal
    trade_currency: str
    base_currency: str
    avg_cost_trade: Decimal
    avg_cost_base: Decimal
    current_price: Decimal
    current_fx_rate: Decimal
    market_value_trade: Decimal
    market_value_base: Decimal
    unrealized_pl: Decimal
    unrealized_pl_percent: Decimal
    price_unrealized_pl: Decimal
    price_unrealized_pl_percent: Decimal
    fx_unrealized_pl: Decimal
    fx_unrealized_pl_percent: Decimal
    allocation_percent: Decimal = Decimal("0")
    price_source: str = "quote"
    fx_rate_source: str = "identity"
    lots: list[Lot] = field(default_factory=list)

    @property
    def cost_basis_trade(self) -> Decimal:
        return self.quantity * self.avg_cost_trade

    @property
    def cost_basis_base(self) -> Decimal:
        return self.quantity * self.avg_cost_base


@dataclass
class HoldingsResult:
    """
    Result of holdings calculation including data integrity warnings.

    This is the return type for HoldingsCalculator.calculate_with_warnings().

    Attributes:
        holdings: Open positions, sorted by market_value_base descending
        warnings: Data integrity warnings (e.g., unknown symbol skipped)

    Note:
        Warnings indicate potential data issues but don't prevent calculation.
    """

    holdings: list[Holding]
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# PORTFOLIO METRICS
# =============================================================================

@dataclass
class PortfolioMetrics:
    """
    Portfolio-level totals derived from its holdings.

    Attributes:
        portfolio_id: Portfolio the totals belong to
        total_equity: Σ market_value_base
        total_cost: Σ quantity × avg_cost_base
        total_pl: Σ unrealized_pl
        total_pl_percent: 100 × total_pl / total_cost (0 if no cost)
        daily_pl: Estimated as a fixed share of total_pl
        daily_pl_percent: 100 × daily_pl / total_equity (0 if no equity)
        holdings: Holdings the totals were computed from
        daily_pl_is_estimated: Always True; there is no daily price feed
    """

    portfolio_id: str
    total_equity: Decimal
    total_cost: Decimal
    total_pl: Decimal
    total_pl_percent: Decimal
    daily_pl: Decimal
    daily_pl_percent: Decimal
    holdings: list[Holding] = field(default_factory=list)
    daily_pl_is_estimated: bool = True


# =============================================================================
# CONSOLIDATION
# =============================================================================

@dataclass(frozen=True)
class PortfolioContribution:
    """One portfolio's position in a consolidated holding."""

    portfolio_id: str
    portfolio_name: str
    quantity: Decimal
    avg_cost: Decimal
    avg_cost_trade: Decimal
    market_value: Decimal
    market_value_trade: Decimal


@dataclass
class ConsolidatedHolding:
    """
    One symbol summed across every portfolio that holds it.

    Attributes:
        total_cost_basis: Σ quantity × avg_cost_base
        total_cost_basis_trade: Σ quantity × avg_cost_trade
        blended_avg_cost: total_cost_basis / total_quantity
        blended_avg_cost_trade: total_cost_basis_trade / total_quantity
        current_price: total_market_value_trade / total_quantity
        current_fx_rate: Contributors' rates weighted by market_value_trade
        portfolios: Per-portfolio breakdown, in portfolio order
    """

    symbol_id: str
    symbol: Symbol
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
    current_price: Decimal
    current_fx_rate: Decimal
    allocation_percent: Decimal = Decimal("0")
    portfolios: list[PortfolioContribution] = field(default_factory=list)


# =============================================================================
# HISTORY
# =============================================================================

@dataclass(frozen=True)
class PortfolioHistoryPoint:
    """
    One calendar day of the reconstructed history.

    Attributes:
        date: Display label ("Jan 5" / "5 Jan")
        iso_date: yyyy-mm-dd
        cost: Cumulative net cash invested up to and including this day
        value: Market value of open positions at the day's best known prices

    Note:
        cost is a running total of cash flows, value is a snapshot.
        After a profitable sale cost can be negative.
    """

    date: str
    iso_date: str
    cost: Decimal
    value: Decimal
