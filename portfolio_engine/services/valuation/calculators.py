# portfolio_engine/services/valuation/calculators.py
"""
Point-in-time valuation calculators.

Each calculator follows the Single Responsibility Principle:
- HoldingsCalculator: Turns one portfolio's transactions into Holdings
- PortfolioMetricsAggregator: Reduces Holdings to portfolio totals
- ConsolidatedHoldingsCalculator: Sums Holdings per symbol across portfolios

Design Principles:
- Stateless (no instance state between calls, deterministic output)
- Receives all inputs explicitly, performs no I/O
- Returns structured result objects (see types.py)
- Uses Decimal for ALL financial calculations
- Degrades instead of failing: unknown symbols are skipped with a warning,
  missing quotes fall back to average cost, missing FX falls back to the
  historical rate

Usage:
    holdings_calc = HoldingsCalculator()
    holdings = holdings_calc.calculate(
        portfolio_id="p-1",
        transactions=[...],
        symbols=[...],
        quotes=[...],
        fx_snapshots=[...],
        lot_method=LotMethod.FIFO,
        base_currency="EUR",
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence, TYPE_CHECKING

from portfolio_engine.models import (
    FxRateSnapshot,
    LotMethod,
    PortfolioRef,
    QuoteSnapshot,
    Symbol,
    Transaction,
    normalize_currency,
)
from portfolio_engine.schemas.validators import coerce_lot_method, validate_records
from portfolio_engine.services.constants import DAILY_PL_ESTIMATE_RATIO, DEFAULT_BASE_CURRENCY
from portfolio_engine.services.currency_converter import CurrencyConverter, FXRateSource
from portfolio_engine.services.valuation.lot_engine import LotEngine, sort_by_trade_date
from portfolio_engine.services.valuation.types import (
    ConsolidatedHolding,
    Holding,
    HoldingsResult,
    PortfolioContribution,
    PortfolioMetrics,
)
from portfolio_engine.utils.date_utils import normalize_timestamp
from portfolio_engine.utils.numbers import ONE, ZERO, finite_or_zero, is_positive, percent_of, safe_divide

if TYPE_CHECKING:
    from portfolio_engine.services.protocols import CurrencyConverterProtocol

logger = logging.getLogger(__name__)


# =============================================================================
# SHARED HELPERS
# =============================================================================

def latest_quote_price(quotes: Sequence[QuoteSnapshot], symbol_id: str) -> Decimal | None:
    """
    Most recent positive quote for a symbol.

    Undated quotes rank below dated ones; among equals the later input
    entry wins.

    Returns:
        Price, or None if the symbol has no usable quote
    """
    best_price: Decimal | None = None
    best_key: tuple[int, datetime, int] | None = None

    for position, quote in enumerate(quotes):
        if quote.symbol_id != symbol_id or not is_positive(quote.price):
            continue
        if quote.asof is None:
            key = (0, datetime.min, position)
        else:
            key = (1, normalize_timestamp(quote.asof), position)
        if best_key is None or key > best_key:
            best_price, best_key = quote.price, key

    return best_price


def allocation_percents(values: Sequence[Decimal]) -> list[Decimal]:
    """100 × value / Σ values for each value; all 0 when the total is 0."""
    total = sum(values, ZERO)
    return [percent_of(value, total) for value in values]


# =============================================================================
# HOLDINGS CALCULATOR
# =============================================================================

class HoldingsCalculator:
    """
    Calculates one portfolio's holdings from its transactions.

    For every symbol the portfolio traded:
    - Replays BUY/SELL/TRANSFER into lots (LotEngine)
    - Values the remaining quantity at the latest quote
    - Converts to base currency at the current FX rate
    - Splits unrealized P/L into price and FX components

    Note:
        Only returns holdings where quantity > 0 (open positions).
        Transactions without a symbol (cash movements) are ignored.
    """

    def __init__(self, converter: CurrencyConverterProtocol | None = None) -> None:
        self._converter = converter or CurrencyConverter()

    def calculate(
            self,
            portfolio_id: str,
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str = LotMethod.FIFO,
            base_currency: str = DEFAULT_BASE_CURRENCY,
    ) -> list[Holding]:
        """Holdings only; see calculate_with_warnings for the full result."""
        return self.calculate_with_warnings(
            portfolio_id=portfolio_id,
            transactions=transactions,
            symbols=symbols,
            quotes=quotes,
            fx_snapshots=fx_snapshots,
            lot_method=lot_method,
            base_currency=base_currency,
        ).holdings

    def calculate_with_warnings(
            self,
            portfolio_id: str,
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str = LotMethod.FIFO,
            base_currency: str = DEFAULT_BASE_CURRENCY,
    ) -> HoldingsResult:
        """
        Calculate holdings for one portfolio.

        Args:
            portfolio_id: Portfolio to value; other portfolios' rows are ignored
            transactions: Transactions of any portfolio, any order
            symbols: Symbol metadata
            quotes: Price snapshots
            fx_snapshots: FX snapshots
            lot_method: Cost-basis method
            base_currency: Reporting currency

        Returns:
            HoldingsResult with holdings sorted by market_value_base
            descending and a warning per skipped symbol

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        transactions = validate_records(transactions, Transaction, "transactions")
        symbols = validate_records(symbols, Symbol, "symbols")
        quotes = validate_records(quotes, QuoteSnapshot, "quotes")
        fx_snapshots = validate_records(fx_snapshots, FxRateSnapshot, "fx_snapshots")
        base_currency = normalize_currency(base_currency) or DEFAULT_BASE_CURRENCY

        engine = LotEngine(coerce_lot_method(lot_method), self._converter)
        symbols_by_id = {s.id: s for s in symbols}
        holdings: list[Holding] = []
        warnings: list[str] = []

        for symbol_id, symbol_txns in self.group_by_symbol(transactions, portfolio_id).items():
            symbol = symbols_by_id.get(symbol_id)
            if symbol is None:
                # Closed positions are skipped silently, known symbol or not
                if engine.build(symbol_txns, base_currency, base_currency).quantity <= ZERO:
                    continue
                logger.warning(f"Symbol {symbol_id} not found for portfolio {portfolio_id}, skipping")
                warnings.append(f"Symbol {symbol_id} not found; its transactions were skipped")
                continue

            holding = self._calculate_holding(
                engine=engine,
                portfolio_id=portfolio_id,
                symbol=symbol,
                transactions=symbol_txns,
                quotes=quotes,
                fx_snapshots=fx_snapshots,
                base_currency=base_currency,
            )
            if holding is not None:
                holdings.append(holding)

        # Second pass: allocation needs every market value
        percents = allocation_percents([h.market_value_base for h in holdings])
        for holding, percent in zip(holdings, percents):
            holding.allocation_percent = percent

        holdings.sort(key=lambda h: h.market_value_base, reverse=True)

        return HoldingsResult(holdings=holdings, warnings=warnings)

    @staticmethod
    def group_by_symbol(
            transactions: Sequence[Transaction],
            portfolio_id: str,
    ) -> dict[str, list[Transaction]]:
        """Group one portfolio's transactions by symbol, in first-seen order."""
        groups: dict[str, list[Transaction]] = {}
        for txn in transactions:
            if txn.portfolio_id != portfolio_id or not txn.symbol_id:
                continue
            groups.setdefault(txn.symbol_id, []).append(txn)
        return groups

    @staticmethod
    def resolve_trade_currency(
            transactions: Sequence[Transaction],
            symbol: Symbol,
            base_currency: str,
    ) -> str:
        """First transaction's currency, else the symbol's quote currency, else base."""
        ordered = sort_by_trade_date(transactions)
        if ordered and ordered[0].trade_currency:
            return ordered[0].trade_currency
        return symbol.quote_currency or base_currency

    def _calculate_holding(
            self,
            engine: LotEngine,
            portfolio_id: str,
            symbol: Symbol,
            transactions: list[Transaction],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot],
            base_currency: str,
    ) -> Holding | None:
        """
        Value one symbol. Returns None for a closed position.

        Cost basis (per lot, at acquisition FX):
            cost_trade = Σ lot.quantity × lot.unit_cost
            cost_base  = Σ lot.quantity × lot.unit_cost × lot.fx_rate

        P/L split:
            unrealized  = market_value_base - cost_base
            price part  = (market_value_trade - cost_trade) × current_fx_rate
            fx part     = unrealized - price part
        """
        trade_currency = self.resolve_trade_currency(transactions, symbol, base_currency)
        book = engine.build(transactions, trade_currency, base_currency, fx_snapshots)

        quantity = book.quantity
        if quantity <= ZERO:
            return None

        cost_trade = book.cost_trade
        cost_base = book.cost_base
        avg_cost_trade = cost_trade / quantity
        avg_cost_base = cost_base / quantity

        quoted_price = latest_quote_price(quotes, symbol.id)
        if quoted_price is None:
            logger.debug(f"No quote for {symbol.ticker}, valuing at average cost")
            current_price = avg_cost_trade
            price_source = "avg_cost"
        else:
            current_price = quoted_price
            price_source = "quote"

        # Today's rate, else the cost-weighted rate the lots were bought at
        historical_rate = safe_divide(cost_base, cost_trade, default=ONE)
        fx_result = self._converter.resolve(
            trade_currency, base_currency, fx_snapshots, fallback_rate=historical_rate
        )
        current_fx_rate = fx_result.rate
        if fx_result.source is FXRateSource.FALLBACK:
            fx_rate_source = "historical"
        else:
            fx_rate_source = fx_result.source.value

        market_value_trade = quantity * current_price
        market_value_base = market_value_trade * current_fx_rate
        cost_basis_base = quantity * avg_cost_base

        unrealized_pl = market_value_base - cost_basis_base
        price_unrealized_pl = (market_value_trade - quantity * avg_cost_trade) * current_fx_rate
        fx_unrealized_pl = unrealized_pl - price_unrealized_pl

        return Holding(
            portfolio_id=portfolio_id,
            symbol_id=symbol.id,
            symbol=symbol,
            quantity=quantity,
            trade_currency=trade_currency,
            base_currency=base_currency,
            avg_cost_trade=avg_cost_trade,
            avg_cost_base=avg_cost_base,
            current_price=current_price,
            current_fx_rate=current_fx_rate,
            market_value_trade=market_value_trade,
            market_value_base=market_value_base,
            unrealized_pl=unrealized_pl,
            unrealized_pl_percent=percent_of(unrealized_pl, cost_basis_base),
            price_unrealized_pl=price_unrealized_pl,
            price_unrealized_pl_percent=percent_of(price_unrealized_pl, cost_basis_base),
            fx_unrealized_pl=fx_unrealized_pl,
            fx_unrealized_pl_percent=percent_of(fx_unrealized_pl, cost_basis_base),
            price_source=price_source,
            fx_rate_source=fx_rate_source,
            lots=book.lots(),
        )


# =============================================================================
# PORTFOLIO METRICS
# =============================================================================

class PortfolioMetricsAggregator:
    """
    Reduces a portfolio's holdings to summary totals.

    daily_pl is an estimate (DAILY_PL_ESTIMATE_RATIO × total_pl): there is
    no previous-close data to compute a real daily change. The result is
    flagged with daily_pl_is_estimated=True.
    """

    def aggregate(self, portfolio_id: str, holdings: Sequence[Holding]) -> PortfolioMetrics:
        total_equity = sum((finite_or_zero(h.market_value_base) for h in holdings), ZERO)
        total_cost = sum((finite_or_zero(h.cost_basis_base) for h in holdings), ZERO)
        total_pl = sum((finite_or_zero(h.unrealized_pl) for h in holdings), ZERO)

        daily_pl = total_pl * DAILY_PL_ESTIMATE_RATIO

        return PortfolioMetrics(
            portfolio_id=portfolio_id,
            total_equity=total_equity,
            total_cost=total_cost,
            total_pl=total_pl,
            total_pl_percent=percent_of(total_pl, total_cost) if total_cost > ZERO else ZERO,
            daily_pl=daily_pl,
            daily_pl_percent=percent_of(daily_pl, total_equity) if total_equity > ZERO else ZERO,
            holdings=list(holdings),
            daily_pl_is_estimated=True,
        )


# =============================================================================
# CONSOLIDATION
# =============================================================================

@dataclass
class _SymbolTotals:
    """Running sums for one symbol during consolidation."""

    symbol: Symbol
    trade_currency: str
    quantity: Decimal = ZERO
    cost_basis: Decimal = ZERO
    cost_basis_trade: Decimal = ZERO
    market_value: Decimal = ZERO
    market_value_trade: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    price_unrealized_pl: Decimal = ZERO
    fx_unrealized_pl: Decimal = ZERO
    weighted_fx: Decimal = ZERO
    fx_rates: list[Decimal] = field(default_factory=list)
    contributions: list[PortfolioContribution] = field(default_factory=list)

    def add(self, portfolio: PortfolioRef, holding: Holding) -> None:
        self.quantity += holding.quantity
        self.cost_basis += holding.cost_basis_base
        self.cost_basis_trade += holding.cost_basis_trade
        self.market_value += holding.market_value_base
        self.market_value_trade += holding.market_value_trade
        self.unrealized_pl += holding.unrealized_pl
        self.price_unrealized_pl += holding.price_unrealized_pl
        self.fx_unrealized_pl += holding.fx_unrealized_pl
        self.weighted_fx += holding.current_fx_rate * holding.market_value_trade
        self.fx_rates.append(holding.current_fx_rate)
        self.contributions.append(PortfolioContribution(
            portfolio_id=portfolio.id,
            portfolio_name=portfolio.name,
            quantity=holding.quantity,
            avg_cost=holding.avg_cost_base,
            avg_cost_trade=holding.avg_cost_trade,
            market_value=holding.market_value_base,
            market_value_trade=holding.market_value_trade,
        ))

    @property
    def blended_fx_rate(self) -> Decimal:
        """Market-value weighted; plain mean when there is no trade value."""
        if self.market_value_trade != ZERO:
            return self.weighted_fx / self.market_value_trade
        if not self.fx_rates:
            return ONE
        return sum(self.fx_rates, ZERO) / len(self.fx_rates)


class ConsolidatedHoldingsCalculator:
    """
    Sums holdings per symbol across several portfolios.

    The blended FX rate weights each contributor's current_fx_rate by its
    market_value_trade, so small positions do not skew it.
    """

    def __init__(self, holdings_calculator: HoldingsCalculator | None = None) -> None:
        self._holdings_calculator = holdings_calculator or HoldingsCalculator()

    def calculate(
            self,
            portfolios: Sequence[PortfolioRef],
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str = LotMethod.FIFO,
            base_currency: str = DEFAULT_BASE_CURRENCY,
    ) -> list[ConsolidatedHolding]:
        """
        Run the holdings calculator per portfolio and consolidate.

        Returns:
            One ConsolidatedHolding per symbol, sorted by
            total_market_value descending

        Raises:
            InvalidInputError: If a collection argument is not a list of records
        """
        portfolios = validate_records(portfolios, PortfolioRef, "portfolios")
        transactions = validate_records(transactions, Transaction, "transactions")
        symbols = validate_records(symbols, Symbol, "symbols")
        quotes = validate_records(quotes, QuoteSnapshot, "quotes")
        fx_snapshots = validate_records(fx_snapshots, FxRateSnapshot, "fx_snapshots")
        base_currency = normalize_currency(base_currency) or DEFAULT_BASE_CURRENCY

        per_portfolio = [
            (
                portfolio,
                self._holdings_calculator.calculate(
                    portfolio_id=portfolio.id,
                    transactions=transactions,
                    symbols=symbols,
                    quotes=quotes,
                    fx_snapshots=fx_snapshots,
                    lot_method=lot_method,
                    base_currency=base_currency,
                ),
            )
            for portfolio in portfolios
        ]
        return self.consolidate(per_portfolio, base_currency)

    def consolidate(
            self,
            per_portfolio: Sequence[tuple[PortfolioRef, Sequence[Holding]]],
            base_currency: str = DEFAULT_BASE_CURRENCY,
    ) -> list[ConsolidatedHolding]:
        """Reduce already-computed holdings, grouped by portfolio."""
        totals: dict[str, _SymbolTotals] = {}

        for portfolio, holdings in per_portfolio:
            for holding in holdings:
                entry = totals.get(holding.symbol_id)
                if entry is None:
                    entry = _SymbolTotals(symbol=holding.symbol, trade_currency=holding.trade_currency)
                    totals[holding.symbol_id] = entry
                entry.add(portfolio, holding)

        consolidated = [
            self._to_consolidated(symbol_id, entry, base_currency)
            for symbol_id, entry in totals.items()
        ]

        percents = allocation_percents([c.total_market_value for c in consolidated])
        for item, percent in zip(consolidated, percents):
            item.allocation_percent = percent

        consolidated.sort(key=lambda c: c.total_market_value, reverse=True)
        return consolidated

    @staticmethod
    def _to_consolidated(symbol_id: str, entry: _SymbolTotals, base_currency: str) -> ConsolidatedHolding:
        return ConsolidatedHolding(
            symbol_id=symbol_id,
            symbol=entry.symbol,
            total_quantity=entry.quantity,
            trade_currency=entry.trade_currency,
            base_currency=base_currency,
            total_cost_basis=entry.cost_basis,
            total_cost_basis_trade=entry.cost_basis_trade,
            blended_avg_cost=safe_divide(entry.cost_basis, entry.quantity),
            blended_avg_cost_trade=safe_divide(entry.cost_basis_trade, entry.quantity),
            total_market_value=entry.market_value,
            total_market_value_trade=entry.market_value_trade,
            total_unrealized_pl=entry.unrealized_pl,
            total_unrealized_pl_percent=percent_of(entry.unrealized_pl, entry.cost_basis),
            price_unrealized_pl=entry.price_unrealized_pl,
            price_unrealized_pl_percent=percent_of(entry.price_unrealized_pl, entry.cost_basis),
            fx_unrealized_pl=entry.fx_unrealized_pl,
            fx_unrealized_pl_percent=percent_of(entry.fx_unrealized_pl, entry.cost_basis),
            current_price=safe_divide(entry.market_value_trade, entry.quantity),
            current_fx_rate=entry.blended_fx_rate,
            portfolios=list(entry.contributions),
        )
