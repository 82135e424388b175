# tests/services/test_valuation_service.py
"""
Tests for ValuationService.

The calculators are covered in their own modules; these tests focus on
what the service adds: configured defaults, input validation and the
wiring between calculators.
"""

from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.config import Settings
from portfolio_engine.models import HistoryOptions, LotMethod, PortfolioRef
from portfolio_engine.services.currency_converter import CurrencyConverter, FXRateResult, FXRateSource
from portfolio_engine.services.exceptions import InvalidInputError, InvalidLotMethodError
from portfolio_engine.services.valuation import HoldingsResult, ValuationService


@pytest.fixture
def eur_settings() -> Settings:
    return Settings(
        _env_file=None,
        base_currency="eur",
        default_lot_method="LIFO",
        history_locale="en-GB",
    )


@pytest.fixture
def service() -> ValuationService:
    return ValuationService(settings=Settings(_env_file=None))


class FixedRateConverter(CurrencyConverter):
    """Converter double that answers every pair with one rate."""

    def __init__(self, fixed: Decimal) -> None:
        super().__init__()
        self.fixed = fixed
        self.calls: list[tuple[str, str]] = []

    def resolve(self, trade_currency, base_currency, fx_snapshots, fallback_rate=None) -> FXRateResult:
        self.calls.append((trade_currency, base_currency))
        return FXRateResult(
            base_currency=trade_currency,
            quote_currency=base_currency,
            rate=self.fixed,
            source=FXRateSource.DIRECT,
        )


# =============================================================================
# HOLDINGS
# =============================================================================

class TestGetHoldings:
    """get_holdings()"""

    def test_returns_result_with_warnings(self, service, lot_sequence, make_transaction, aapl, make_quote):
        txns = lot_sequence + [make_transaction("BUY", 1, 1, date(2024, 1, 1), symbol_id="sym-gone")]

        result = service.get_holdings("p-1", txns, [aapl], [make_quote(150, date(2024, 5, 1))])

        assert isinstance(result, HoldingsResult)
        assert [h.symbol_id for h in result.holdings] == ["sym-aapl"]
        assert len(result.warnings) == 1

    def test_defaults_from_settings(self, eur_settings, lot_sequence, aapl):
        service = ValuationService(settings=eur_settings)

        (h,) = service.get_holdings("p-1", lot_sequence, [aapl], []).holdings

        assert h.base_currency == "EUR"
        assert float(h.avg_cost_trade) == pytest.approx(95.8333333, abs=1e-6)

    def test_explicit_arguments_override_settings(self, eur_settings, lot_sequence, aapl):
        service = ValuationService(settings=eur_settings)

        (h,) = service.get_holdings(
            "p-1", lot_sequence, [aapl], [], lot_method="fifo", base_currency="usd"
        ).holdings

        assert h.base_currency == "USD"
        assert float(h.avg_cost_trade) == pytest.approx(104.1666667, abs=1e-6)

    def test_injected_converter(self, make_transaction, make_quote, sap):
        converter = FixedRateConverter(Decimal("2"))
        service = ValuationService(converter=converter, settings=Settings(_env_file=None))
        txns = [
            make_transaction("BUY", 1, 100, date(2024, 1, 1), symbol_id="sym-sap", trade_currency="EUR"),
        ]

        (h,) = service.get_holdings(
            "p-1", txns, [sap], [make_quote(110, date(2024, 2, 1), symbol_id="sym-sap")]
        ).holdings

        assert h.current_fx_rate == Decimal("2")
        assert h.market_value_base == Decimal("220")
        assert ("EUR", "USD") in converter.calls

    @pytest.mark.parametrize("bad", [None, "AAPL", {"sym-aapl": 1}, 3.5])
    def test_rejects_non_list_symbols(self, service, lot_sequence, bad):
        with pytest.raises(InvalidInputError) as exc_info:
            service.get_holdings("p-1", lot_sequence, bad, [])
        assert exc_info.value.field == "symbols"
        assert "symbols" in str(exc_info.value)

    def test_rejects_unknown_lot_method(self, service, lot_sequence, aapl):
        with pytest.raises(InvalidLotMethodError):
            service.get_holdings("p-1", lot_sequence, [aapl], [], lot_method="RANDOM")

    def test_accepts_tuples(self, service, lot_sequence, aapl):
        result = service.get_holdings("p-1", tuple(lot_sequence), (aapl,), (), ())
        assert len(result.holdings) == 1


# =============================================================================
# METRICS
# =============================================================================

class TestGetPortfolioMetrics:
    """get_portfolio_metrics()"""

    def test_totals(self, service, lot_sequence, aapl, make_quote):
        metrics = service.get_portfolio_metrics("p-1", lot_sequence, [aapl], [make_quote(150, date(2024, 5, 1))])

        assert metrics.total_equity == Decimal("1800")
        assert float(metrics.total_pl) == pytest.approx(550, abs=1e-9)
        assert metrics.daily_pl_is_estimated is True
        assert len(metrics.holdings) == 1

    def test_empty_portfolio(self, service):
        metrics = service.get_portfolio_metrics("p-1", [], [], [])
        assert metrics.total_equity == Decimal("0")
        assert metrics.holdings == []


# =============================================================================
# CONSOLIDATION
# =============================================================================

class TestGetConsolidatedHoldings:
    """get_consolidated_holdings()"""

    def test_across_portfolios(self, service, make_transaction, aapl):
        txns = [
            make_transaction("BUY", 2, 100, date(2024, 1, 1)),
            make_transaction("BUY", 3, 110, date(2024, 1, 1), portfolio_id="p-2"),
            make_transaction("BUY", 7, 1, date(2024, 1, 1), portfolio_id="p-3"),
        ]
        portfolios = [PortfolioRef(id="p-1", name="One"), PortfolioRef(id="p-2", name="Two")]

        (row,) = service.get_consolidated_holdings(portfolios, txns, [aapl], [])

        assert row.total_quantity == Decimal("5")
        assert row.total_cost_basis == Decimal("530")
        assert [p.portfolio_id for p in row.portfolios] == ["p-1", "p-2"]

    def test_accepts_portfolio_mappings(self, service, make_transaction, aapl):
        txns = [make_transaction("BUY", 2, 100, date(2024, 1, 1))]
        (row,) = service.get_consolidated_holdings([{"id": "p-1", "name": "Main"}], txns, [aapl], [])
        assert row.portfolios[0].portfolio_name == "Main"

    def test_rejects_non_list_portfolios(self, service):
        with pytest.raises(InvalidInputError):
            service.get_consolidated_holdings("p-1", [], [], [])


# =============================================================================
# HISTORY
# =============================================================================

class TestGetHistory:
    """get_history()"""

    def test_locale_from_settings(self, eur_settings, make_transaction):
        service = ValuationService(settings=eur_settings)
        txns = [make_transaction("BUY", 1, 10, date(2024, 1, 5))]

        (point,) = service.get_history(txns, [], options=HistoryOptions(end_date=date(2024, 1, 5)))

        assert point.date == "5 Jan"

    def test_explicit_locale_wins(self, eur_settings, make_transaction):
        service = ValuationService(settings=eur_settings)
        txns = [make_transaction("BUY", 1, 10, date(2024, 1, 5))]

        (point,) = service.get_history(
            txns, [], options=HistoryOptions(end_date=date(2024, 1, 5), locale="en-US")
        )

        assert point.date == "Jan 5"

    def test_lot_method_default(self, eur_settings, make_transaction):
        """The configured method is applied even though cost does not depend on it."""
        service = ValuationService(settings=eur_settings)
        txns = [make_transaction("BUY", 1, 10, date(2024, 1, 5))]
        points = service.get_history(txns, [], options=HistoryOptions(end_date=date(2024, 1, 6)))
        assert [p.cost for p in points] == [Decimal("10"), Decimal("10")]

    def test_empty(self, service):
        assert service.get_history([], []) == []

    def test_rejects_non_list(self, service):
        with pytest.raises(InvalidInputError) as exc_info:
            service.get_history(None, [])
        assert exc_info.value.field == "transactions"


class TestSettingsDefaults:
    def test_lot_method_is_enum(self, eur_settings):
        assert eur_settings.default_lot_method is LotMethod.LIFO
        assert eur_settings.base_currency == "EUR"
