# tests/services/test_history_calculator.py
"""
Tests for portfolio history reconstruction.

Test Coverage:
- Cumulative cost as a net cash-flow series
- Price selection order (same-day trade, quote, last trade, cost)
- Gap-free daily output, end-date clamping, empty input
- Display labels per locale
- Agreement with the holdings calculator on the final day
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from portfolio_engine.models import HistoryOptions, LotMethod
from portfolio_engine.services.exceptions import InvalidInputError, InvalidLotMethodError
from portfolio_engine.services.valuation.calculators import HoldingsCalculator
from portfolio_engine.services.valuation.history_calculator import (
    PortfolioHistoryReconstructor,
    QuoteTimeline,
    net_investment_delta,
)


@pytest.fixture
def reconstructor() -> PortfolioHistoryReconstructor:
    return PortfolioHistoryReconstructor()


def _until(day: date, locale: str | None = None) -> HistoryOptions:
    return HistoryOptions(end_date=day, locale=locale)


# =============================================================================
# QUOTE TIMELINE
# =============================================================================

class TestQuoteTimeline:
    """Latest quote on or before a day."""

    def test_lookup(self, make_quote):
        timeline = QuoteTimeline([
            make_quote(110, date(2024, 1, 10)),
            make_quote(100, date(2024, 1, 5)),
        ])
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 1, 4)) is None
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 1, 5)) == Decimal("100")
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 1, 9)) == Decimal("100")
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 2, 1)) == Decimal("110")

    def test_drops_undated_and_non_positive(self, make_quote):
        timeline = QuoteTimeline([
            make_quote(100, None),
            make_quote(0, date(2024, 1, 1)),
            make_quote("NaN", date(2024, 1, 1)),
        ])
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 12, 31)) is None

    def test_intraday_quotes_use_latest(self, make_quote):
        timeline = QuoteTimeline([
            make_quote(105, datetime(2024, 1, 5, 16, 0)),
            make_quote(101, datetime(2024, 1, 5, 9, 30)),
        ])
        assert timeline.latest_on_or_before("sym-aapl", date(2024, 1, 5)) == Decimal("105")

    def test_unknown_symbol(self):
        assert QuoteTimeline([]).latest_on_or_before("sym-x", date(2024, 1, 1)) is None


# =============================================================================
# NET INVESTMENT
# =============================================================================

class TestNetInvestmentDelta:
    @pytest.mark.parametrize(
        "txn_type, quantity, price, fee, expected",
        [
            ("BUY", 2, 100, 5, Decimal("205")),
            ("SELL", 2, 100, 5, Decimal("-195")),
            ("TRANSFER", 2, 50, 5, Decimal("100")),
            ("TRANSFER", -2, 50, 5, Decimal("-100")),
            ("DIVIDEND", 0, 30, 0, Decimal("0")),
            ("DEPOSIT", 1000, 1, 0, Decimal("0")),
        ],
    )
    def test_delta(self, make_transaction, txn_type, quantity, price, fee, expected):
        txn = make_transaction(txn_type, quantity, price, date(2024, 1, 1), fee=fee)
        assert net_investment_delta(txn) == expected


# =============================================================================
# RECONSTRUCTION
# =============================================================================

class TestPortfolioHistoryReconstructor:
    """Daily cost/value series."""

    @pytest.fixture
    def round_trip(self, make_transaction):
        return [
            make_transaction("BUY", 1, 100, date(2024, 1, 1)),
            make_transaction("BUY", 1, 200, date(2024, 1, 2)),
            make_transaction("SELL", 1, 150, date(2024, 1, 3)),
            make_transaction("SELL", 1, 175, date(2024, 1, 4)),
        ]

    @pytest.mark.parametrize("method", [LotMethod.FIFO, LotMethod.HIFO, LotMethod.LIFO, LotMethod.AVERAGE])
    def test_cost_is_net_cash_flow(self, reconstructor, round_trip, method):
        points = reconstructor.calculate(round_trip, [], method, _until(date(2024, 1, 4)))
        assert [p.cost for p in points] == [
            Decimal("100"),
            Decimal("300"),
            Decimal("150"),
            Decimal("-25"),
        ]

    def test_value_uses_trade_prices(self, reconstructor, round_trip):
        points = reconstructor.calculate(round_trip, [], options=_until(date(2024, 1, 5)))
        assert [p.value for p in points] == [
            Decimal("100"),
            Decimal("400"),
            Decimal("150"),
            Decimal("0"),
            Decimal("0"),
        ]

    def test_same_day_trade_beats_quote(self, reconstructor, make_transaction, make_quote):
        txns = [make_transaction("BUY", 10, 100, date(2024, 1, 1))]
        quotes = [make_quote(130, date(2024, 1, 1))]

        points = reconstructor.calculate(txns, quotes, options=_until(date(2024, 1, 2)))

        assert [p.value for p in points] == [Decimal("1000"), Decimal("1300")]

    def test_quote_on_or_before_day(self, reconstructor, make_transaction, make_quote):
        txns = [make_transaction("BUY", 2, 100, date(2024, 1, 1))]
        quotes = [make_quote(120, date(2024, 1, 3)), make_quote(90, date(2024, 1, 5))]

        points = reconstructor.calculate(txns, quotes, options=_until(date(2024, 1, 6)))

        assert [p.value for p in points] == [
            Decimal("200"),  # trade day
            Decimal("200"),  # last trade price
            Decimal("240"),
            Decimal("240"),
            Decimal("180"),
            Decimal("180"),
        ]

    def test_cost_per_unit_when_never_priced(self, reconstructor, make_transaction):
        txns = [make_transaction("TRANSFER", 5, 0, date(2024, 1, 1))]
        points = reconstructor.calculate(txns, [], options=_until(date(2024, 1, 2)))
        assert [p.value for p in points] == [Decimal("0"), Decimal("0")]
        assert [p.cost for p in points] == [Decimal("0"), Decimal("0")]

    def test_transfer_out_reduces_position(self, reconstructor, make_transaction):
        txns = [
            make_transaction("BUY", 4, 50, date(2024, 1, 1)),
            make_transaction("TRANSFER", -1, 60, date(2024, 1, 2)),
        ]
        points = reconstructor.calculate(txns, [], options=_until(date(2024, 1, 2)))
        assert points[-1].cost == Decimal("140")
        assert points[-1].value == Decimal("180")

    def test_reopened_position_starts_fresh(self, reconstructor, make_transaction):
        txns = [
            make_transaction("BUY", 2, 100, date(2024, 1, 1)),
            make_transaction("SELL", 2, 110, date(2024, 1, 2)),
            make_transaction("BUY", 1, 90, date(2024, 1, 3)),
        ]
        points = reconstructor.calculate(txns, [], options=_until(date(2024, 1, 3)))
        assert [p.value for p in points] == [Decimal("200"), Decimal("0"), Decimal("90")]

    def test_multiple_symbols(self, reconstructor, make_transaction, make_quote):
        txns = [
            make_transaction("BUY", 1, 100, date(2024, 1, 1)),
            make_transaction("BUY", 2, 50, date(2024, 1, 1), symbol_id="sym-msft"),
        ]
        quotes = [
            make_quote(110, date(2024, 1, 2)),
            make_quote(55, date(2024, 1, 2), symbol_id="sym-msft"),
        ]
        points = reconstructor.calculate(txns, quotes, options=_until(date(2024, 1, 2)))
        assert [p.value for p in points] == [Decimal("200"), Decimal("220")]

    def test_gap_free_days(self, reconstructor, make_transaction):
        txns = [
            make_transaction("BUY", 1, 10, date(2024, 2, 27)),
            make_transaction("BUY", 1, 10, date(2024, 3, 2)),
        ]
        points = reconstructor.calculate(txns, [], options=_until(date(2024, 3, 3)))
        assert [p.iso_date for p in points] == [
            "2024-02-27",
            "2024-02-28",
            "2024-02-29",
            "2024-03-01",
            "2024-03-02",
            "2024-03-03",
        ]

    def test_unsorted_input(self, reconstructor, round_trip):
        reversed_points = reconstructor.calculate(list(reversed(round_trip)), [], options=_until(date(2024, 1, 4)))
        ordered_points = reconstructor.calculate(round_trip, [], options=_until(date(2024, 1, 4)))
        assert reversed_points == ordered_points

    def test_end_before_start_clamps_to_one_day(self, reconstructor, round_trip):
        points = reconstructor.calculate(round_trip, [], options=_until(date(2023, 6, 1)))
        assert len(points) == 1
        assert points[0].iso_date == "2024-01-01"

    def test_defaults_to_today(self, reconstructor, make_transaction):
        start = datetime.now(timezone.utc).date() - timedelta(days=2)
        points = reconstructor.calculate([make_transaction("BUY", 1, 10, start)], [])
        assert len(points) == 3

    def test_aware_trade_date_uses_utc_day(self, reconstructor, make_transaction):
        trade_date = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        points = reconstructor.calculate(
            [make_transaction("BUY", 1, 10, trade_date)], [], options=_until(date(2024, 1, 2))
        )
        assert [p.iso_date for p in points] == ["2024-01-02"]

    def test_cash_only_is_empty(self, reconstructor, make_transaction):
        txns = [
            make_transaction("DEPOSIT", 1000, 1, date(2024, 1, 1), symbol_id=None),
            make_transaction("DIVIDEND", 0, 12, date(2024, 1, 2)),
        ]
        assert reconstructor.calculate(txns, [], options=_until(date(2024, 1, 5))) == []

    def test_empty_is_empty(self, reconstructor):
        assert reconstructor.calculate([], []) == []

    def test_values_rounded_half_up(self, reconstructor, make_transaction):
        txns = [make_transaction("BUY", 3, "0.335", date(2024, 1, 1))]
        (point,) = reconstructor.calculate(txns, [], options=_until(date(2024, 1, 1)))
        assert point.cost == Decimal("1.01")
        assert point.value == Decimal("1.01")

    def test_non_finite_fields_coerced(self, reconstructor, make_transaction, make_quote):
        """Should treat NaN and infinite inputs as 0 and keep the series finite."""
        txns = [
            make_transaction("BUY", 10, 100, date(2024, 1, 1)),
            make_transaction("BUY", "NaN", 100, date(2024, 1, 2)),
            make_transaction("BUY", 5, "Infinity", date(2024, 1, 3), fee="NaN"),
        ]
        quotes = [make_quote("NaN", date(2024, 1, 3))]

        points = reconstructor.calculate(txns, quotes, options=_until(date(2024, 1, 3)))

        assert [(p.cost, p.value) for p in points] == [
            (Decimal("1000.00"), Decimal("1000.00")),
            (Decimal("1000.00"), Decimal("1000.00")),
            (Decimal("1000.00"), Decimal("1500.00")),
        ]

    @pytest.mark.parametrize(
        "locale, expected",
        [
            (None, "Jan 5"),
            ("en-US", "Jan 5"),
            ("en", "Jan 5"),
            ("en-GB", "5 Jan"),
            ("de_DE", "5 Jan"),
        ],
    )
    def test_display_labels(self, reconstructor, make_transaction, locale, expected):
        txns = [make_transaction("BUY", 1, 10, date(2024, 1, 5))]
        (point,) = reconstructor.calculate(txns, [], options=_until(date(2024, 1, 5), locale))
        assert point.date == expected

    def test_rejects_non_list(self, reconstructor):
        with pytest.raises(InvalidInputError) as exc_info:
            reconstructor.calculate([], "quotes")
        assert exc_info.value.field == "quotes"

    def test_rejects_unknown_lot_method(self, reconstructor, round_trip):
        with pytest.raises(InvalidLotMethodError):
            reconstructor.calculate(round_trip, [], "OLDEST")


class TestHistoryMatchesHoldings:
    """The last history point agrees with the holdings valuation."""

    @pytest.mark.parametrize("method", list(LotMethod))
    def test_final_value_matches_market_value(
            self, reconstructor, make_transaction, make_quote, aapl, msft, method
    ):
        txns = [
            make_transaction("BUY", 10, 100, date(2024, 1, 1)),
            make_transaction("BUY", 5, 120, date(2024, 1, 10)),
            make_transaction("SELL", 3, 125, date(2024, 1, 12)),
            make_transaction("BUY", 4, 40, date(2024, 1, 3), symbol_id="sym-msft"),
        ]
        quotes = [
            make_quote(118, date(2024, 1, 11)),
            make_quote(130, date(2024, 1, 15)),
            make_quote(45, date(2024, 1, 14), symbol_id="sym-msft"),
        ]
        end = date(2024, 1, 20)

        points = reconstructor.calculate(txns, quotes, method, _until(end))
        holdings = HoldingsCalculator().calculate("p-1", txns, [aapl, msft], quotes, lot_method=method)

        total = sum(h.market_value_base for h in holdings)
        assert points[-1].iso_date == "2024-01-20"
        assert points[-1].value == total.quantize(Decimal("0.01"))
        assert points[-1].value == Decimal("1740.00")
