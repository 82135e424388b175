# portfolio_engine/services/valuation/service.py
"""
Valuation Service - Main orchestrator for portfolio valuation.

This is the single entry point for all valuation operations:
- get_holdings(): Open positions of one portfolio
- get_portfolio_metrics(): Portfolio totals (equity, cost, P/L)
- get_consolidated_holdings(): Positions summed across portfolios
- get_history(): Daily cost/value series for charts

Design Principles:
- Dependency Injection: converter and settings injected via constructor
- Single Entry Point: All valuation goes through this service
- No HTTP Knowledge: Raises domain exceptions, not HTTP errors
- No I/O: callers fetch transactions, quotes and FX snapshots beforehand
- Composable: Uses specialized calculators for each task
- Traceable: each call runs under one correlation ID (see utils.context)

Usage:
    from portfolio_engine.services.valuation import ValuationService

    service = ValuationService()

    # Open positions
    result = service.get_holdings("p-1", transactions, symbols, quotes, fx_snapshots)

    # Totals
    metrics = service.get_portfolio_metrics("p-1", transactions, symbols, quotes)

    # Time series for charts
    points = service.get_history(
        transactions, quotes,
        options=HistoryOptions(end_date=date(2024, 12, 31)),
    )
"""

from __future__ import annotations

import logging
from typing import Sequence, TYPE_CHECKING

from portfolio_engine.config import Settings, settings as default_settings
from portfolio_engine.models import (
    FxRateSnapshot,
    HistoryOptions,
    LotMethod,
    PortfolioRef,
    QuoteSnapshot,
    Symbol,
    Transaction,
)
from portfolio_engine.schemas.validators import coerce_lot_method, normalize_currency, validate_records
from portfolio_engine.services.currency_converter import CurrencyConverter
from portfolio_engine.services.valuation.calculators import (
    ConsolidatedHoldingsCalculator,
    HoldingsCalculator,
    PortfolioMetricsAggregator,
)
from portfolio_engine.services.valuation.history_calculator import PortfolioHistoryReconstructor
from portfolio_engine.services.valuation.types import (
    ConsolidatedHolding,
    HoldingsResult,
    PortfolioHistoryPoint,
    PortfolioMetrics,
)
from portfolio_engine.utils.context import correlated

if TYPE_CHECKING:
    from portfolio_engine.services.protocols import CurrencyConverterProtocol

logger = logging.getLogger(__name__)


class ValuationService:
    """
    Main service for portfolio valuation operations.

    Orchestrates the calculators and applies configured defaults
    (lot method, base currency, history locale) where the caller
    passes none.

    Attributes:
        _settings: Engine settings used for defaults
        _holdings_calc: Calculator for per-portfolio holdings
        _metrics_agg: Aggregator for portfolio totals
        _consolidated_calc: Calculator for cross-portfolio positions
        _history: Reconstructor for the daily series
    """

    def __init__(
            self,
            converter: CurrencyConverterProtocol | None = None,
            settings: Settings | None = None,
    ) -> None:
        """
        Initialize the valuation service.

        Args:
            converter: Currency converter. If None, creates a default one.
            settings: Engine settings. If None, uses the module-level settings.
        """
        self._settings = settings or default_settings
        self._converter: CurrencyConverterProtocol = converter or CurrencyConverter()

        self._holdings_calc = HoldingsCalculator(self._converter)
        self._metrics_agg = PortfolioMetricsAggregator()
        self._consolidated_calc = ConsolidatedHoldingsCalculator(self._holdings_calc)
        self._history = PortfolioHistoryReconstructor()

        logger.debug("ValuationService initialized")

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @correlated
    def get_holdings(
            self,
            portfolio_id: str,
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str | None = None,
            base_currency: str | None = None,
    ) -> HoldingsResult:
        """
        Open positions of one portfolio.

        Returns:
            HoldingsResult (holdings sorted by market value, plus warnings)

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        method = self._lot_method(lot_method)
        currency = self._base_currency(base_currency)

        result = self._holdings_calc.calculate_with_warnings(
            portfolio_id=portfolio_id,
            transactions=validate_records(transactions, Transaction, "transactions"),
            symbols=validate_records(symbols, Symbol, "symbols"),
            quotes=validate_records(quotes, QuoteSnapshot, "quotes"),
            fx_snapshots=validate_records(fx_snapshots, FxRateSnapshot, "fx_snapshots"),
            lot_method=method,
            base_currency=currency,
        )

        logger.info(
            f"Computed {len(result.holdings)} holdings for portfolio {portfolio_id} "
            f"({method.value}, {currency}, {len(result.warnings)} warnings)"
        )
        return result

    @correlated
    def get_portfolio_metrics(
            self,
            portfolio_id: str,
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str | None = None,
            base_currency: str | None = None,
    ) -> PortfolioMetrics:
        """
        Portfolio totals. daily_pl is an estimate (see PortfolioMetricsAggregator).

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        result = self.get_holdings(
            portfolio_id=portfolio_id,
            transactions=transactions,
            symbols=symbols,
            quotes=quotes,
            fx_snapshots=fx_snapshots,
            lot_method=lot_method,
            base_currency=base_currency,
        )
        metrics = self._metrics_agg.aggregate(portfolio_id, result.holdings)

        logger.info(
            f"Portfolio {portfolio_id} metrics: equity={metrics.total_equity}, "
            f"cost={metrics.total_cost}, pl={metrics.total_pl}"
        )
        return metrics

    @correlated
    def get_consolidated_holdings(
            self,
            portfolios: Sequence[PortfolioRef],
            transactions: Sequence[Transaction],
            symbols: Sequence[Symbol],
            quotes: Sequence[QuoteSnapshot],
            fx_snapshots: Sequence[FxRateSnapshot] = (),
            lot_method: LotMethod | str | None = None,
            base_currency: str | None = None,
    ) -> list[ConsolidatedHolding]:
        """
        Positions summed per symbol across the given portfolios.

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        portfolios = validate_records(portfolios, PortfolioRef, "portfolios")
        method = self._lot_method(lot_method)
        currency = self._base_currency(base_currency)

        consolidated = self._consolidated_calc.calculate(
            portfolios=portfolios,
            transactions=validate_records(transactions, Transaction, "transactions"),
            symbols=validate_records(symbols, Symbol, "symbols"),
            quotes=validate_records(quotes, QuoteSnapshot, "quotes"),
            fx_snapshots=validate_records(fx_snapshots, FxRateSnapshot, "fx_snapshots"),
            lot_method=method,
            base_currency=currency,
        )

        logger.info(
            f"Consolidated {len(consolidated)} symbols across {len(portfolios)} portfolios "
            f"({method.value}, {currency})"
        )
        return consolidated

    @correlated
    def get_history(
            self,
            transactions: Sequence[Transaction],
            quotes: Sequence[QuoteSnapshot],
            lot_method: LotMethod | str | None = None,
            options: HistoryOptions | None = None,
    ) -> list[PortfolioHistoryPoint]:
        """
        Daily cost/value series.

        The display locale defaults to settings.history_locale.

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        method = self._lot_method(lot_method)
        options = options or HistoryOptions()
        if not options.locale:
            options = options.model_copy(update={"locale": self._settings.history_locale})

        points = self._history.calculate(
            transactions=validate_records(transactions, Transaction, "transactions"),
            quotes=validate_records(quotes, QuoteSnapshot, "quotes"),
            lot_method=method,
            options=options,
        )

        if points:
            logger.info(
                f"Built history with {len(points)} points "
                f"({points[0].iso_date} to {points[-1].iso_date}, {method.value})"
            )
        else:
            logger.info("No lot-moving transactions, history is empty")
        return points

    # =========================================================================
    # DEFAULTS
    # =========================================================================

    def _lot_method(self, lot_method: LotMethod | str | None) -> LotMethod:
        if lot_method is None:
            return self._settings.default_lot_method
        return coerce_lot_method(lot_method)

    def _base_currency(self, base_currency: str | None) -> str:
        return normalize_currency(base_currency) or self._settings.base_currency
