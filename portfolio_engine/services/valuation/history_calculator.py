# portfolio_engine/services/valuation/history_calculator.py
"""
Portfolio history reconstruction (daily time series).

Replays transactions against a sparse quote timeline and emits one point
per calendar day, from the first BUY/SELL/TRANSFER through the end date:

    cost  - cumulative net cash invested (running total of cash flows)
    value - quantity × best known price, summed over open positions

cost is a running total while value is a snapshot, so after a profitable
sale cost can go negative while value keeps tracking what is still held.

Rolling State:
    Instead of re-filtering all transactions for each day (O(D*T)), the
    day loop advances a transaction cursor and only applies transactions
    dated on the current day (O(D+T)). Lot state per symbol lives in the
    same lot books the holdings calculator uses.

Price Selection (per open position, per day):
    1. Trade price, if the symbol traded on this exact day
    2. Latest dated quote with asof on or before this day
    3. Last trade price ever seen for the symbol
    4. Position cost per unit

Values are not FX-converted; each symbol is valued in its quoted terms.

Usage:
    reconstructor = PortfolioHistoryReconstructor()
    points = reconstructor.calculate(
        transactions=[...],
        quotes=[...],
        lot_method=LotMethod.FIFO,
        options=HistoryOptions(locale="en-GB", end_date=date(2024, 3, 31)),
    )
"""

from __future__ import annotations

import bisect
import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence, assert_never

from portfolio_engine.models import HistoryOptions, LotMethod, QuoteSnapshot, Transaction, TransactionType
from portfolio_engine.schemas.validators import coerce_lot_method, validate_records
from portfolio_engine.services.constants import DEFAULT_HISTORY_LOCALE
from portfolio_engine.services.valuation.lot_engine import (
    LotBook,
    apply_to_book,
    create_lot_book,
    prepare_lot_transactions,
)
from portfolio_engine.services.valuation.types import PortfolioHistoryPoint
from portfolio_engine.utils.date_utils import (
    format_display_date,
    iso_date,
    iter_days,
    normalize_timestamp,
    to_day,
    today_utc,
)
from portfolio_engine.utils.numbers import ZERO, finite_or_zero, is_positive, round2, safe_divide

logger = logging.getLogger(__name__)


# =============================================================================
# QUOTE TIMELINE
# =============================================================================

class QuoteTimeline:
    """
    Dated quotes indexed per symbol for "latest on or before day" lookups.

    Quotes without asof, or with a non-positive or non-finite price,
    are dropped. Within one symbol, quotes are ordered by timestamp
    (stable), so the later of two same-time quotes wins.
    """

    def __init__(self, quotes: Sequence[QuoteSnapshot]) -> None:
        entries: dict[str, list[tuple[datetime, Decimal]]] = defaultdict(list)
        for quote in quotes:
            if quote.asof is None or not is_positive(quote.price):
                continue
            entries[quote.symbol_id].append((normalize_timestamp(quote.asof), quote.price))

        self._days: dict[str, list[date]] = {}
        self._prices: dict[str, list[Decimal]] = {}
        for symbol_id, symbol_entries in entries.items():
            symbol_entries.sort(key=lambda entry: entry[0])
            self._days[symbol_id] = [ts.date() for ts, _ in symbol_entries]
            self._prices[symbol_id] = [price for _, price in symbol_entries]

    def latest_on_or_before(self, symbol_id: str, day: date) -> Decimal | None:
        """Price of the most recent quote dated on or before day."""
        days = self._days.get(symbol_id)
        if not days:
            return None
        index = bisect.bisect_right(days, day)
        if index == 0:
            return None
        return self._prices[symbol_id][index - 1]


# =============================================================================
# NET INVESTMENT
# =============================================================================

def net_investment_delta(transaction: Transaction) -> Decimal:
    """
    Cash a transaction adds to (or withdraws from) net investment.

    BUY:      + quantity × price + fee
    SELL:     - (quantity × price - fee)
    TRANSFER: + quantity × price (negative quantity withdraws; no fee)
    """
    quantity = finite_or_zero(transaction.quantity)
    price = finite_or_zero(transaction.unit_price)
    fee = finite_or_zero(transaction.fee)

    txn_type = transaction.type
    if txn_type is TransactionType.BUY:
        return quantity * price + fee
    elif txn_type is TransactionType.SELL:
        return -(quantity * price - fee)
    elif txn_type is TransactionType.TRANSFER:
        return quantity * price
    elif (
            txn_type is TransactionType.DEPOSIT
            or txn_type is TransactionType.WITHDRAW
            or txn_type is TransactionType.DIVIDEND
            or txn_type is TransactionType.FEE
    ):
        return ZERO
    else:
        assert_never(txn_type)


# =============================================================================
# RECONSTRUCTOR
# =============================================================================

class PortfolioHistoryReconstructor:
    """
    Builds a gap-free daily cost/value series from transactions and quotes.

    Stateless between calls; all rolling state is local to calculate().
    """

    def calculate(
            self,
            transactions: Sequence[Transaction],
            quotes: Sequence[QuoteSnapshot],
            lot_method: LotMethod | str = LotMethod.FIFO,
            options: HistoryOptions | None = None,
    ) -> list[PortfolioHistoryPoint]:
        """
        Reconstruct the daily series.

        Args:
            transactions: Transactions of one portfolio, any order
            quotes: Price snapshots (only dated ones are used)
            lot_method: Cost-basis method for lot consumption
            options: Display locale and inclusive end date (default: today, UTC)

        Returns:
            One point per day from the first BUY/SELL/TRANSFER day through
            the end date; [] if there is no such transaction

        Raises:
            InvalidInputError: If a collection argument is not a list of records
            InvalidLotMethodError: If lot_method is unknown
        """
        transactions = validate_records(transactions, Transaction, "transactions")
        quotes = validate_records(quotes, QuoteSnapshot, "quotes")
        lot_method = coerce_lot_method(lot_method)
        options = options or HistoryOptions()

        relevant = prepare_lot_transactions(transactions)
        if not relevant:
            return []

        locale = options.locale or DEFAULT_HISTORY_LOCALE
        start_day = to_day(relevant[0].trade_date)
        end_day = to_day(options.end_date) if options.end_date is not None else today_utc()
        if end_day < start_day:
            end_day = start_day

        timeline = QuoteTimeline(quotes)
        positions: dict[str, LotBook] = {}
        last_trade: dict[str, tuple[Decimal, date]] = {}
        net_investment = ZERO
        history: list[PortfolioHistoryPoint] = []

        txn_index = 0
        num_txns = len(relevant)

        for day in iter_days(start_day, end_day):
            # === PHASE 1: Apply this day's transactions ===
            while txn_index < num_txns and to_day(relevant[txn_index].trade_date) <= day:
                txn = relevant[txn_index]
                txn_index += 1

                symbol_id = txn.symbol_id
                if not symbol_id:
                    continue

                book = positions.get(symbol_id)
                if book is None:
                    book = create_lot_book(lot_method)
                    positions[symbol_id] = book

                apply_to_book(book, txn)
                net_investment += net_investment_delta(txn)

                # Closed positions stop carrying cost into later days
                if book.quantity <= ZERO:
                    del positions[symbol_id]

                trade_price = finite_or_zero(txn.unit_price)
                if trade_price > ZERO:
                    last_trade[symbol_id] = (trade_price, day)

            # === PHASE 2: Value open positions ===
            total_value = ZERO
            for symbol_id, book in positions.items():
                price = self._select_price(symbol_id, book, day, timeline, last_trade)
                if price > ZERO:
                    total_value += book.quantity * price

            history.append(PortfolioHistoryPoint(
                date=format_display_date(day, locale),
                iso_date=iso_date(day),
                cost=round2(net_investment),
                value=round2(total_value),
            ))

        logger.debug(
            f"Reconstructed {len(history)} history points from {num_txns} transactions "
            f"({start_day} to {end_day})"
        )
        return history

    @staticmethod
    def _select_price(
            symbol_id: str,
            book: LotBook,
            day: date,
            timeline: QuoteTimeline,
            last_trade: dict[str, tuple[Decimal, date]],
    ) -> Decimal:
        """Best known price for a position on a day (see module docstring)."""
        trade = last_trade.get(symbol_id)
        if trade is not None and trade[1] == day:
            return trade[0]

        quoted = timeline.latest_on_or_before(symbol_id, day)
        if quoted is not None:
            return quoted

        if trade is not None:
            return trade[0]

        logger.debug(f"No price for {symbol_id} on {day}, valuing at cost per unit")
        return safe_divide(book.cost_trade, book.quantity)
