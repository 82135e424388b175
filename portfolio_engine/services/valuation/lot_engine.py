# portfolio_engine/services/valuation/lot_engine.py
"""
Tax-lot accounting.

A lot book tracks what is still held of one symbol and decides which
acquisition a disposal consumes:

- DiscreteLotBook: ordered list of lots for FIFO, LIFO and HIFO
- AverageCostBook: one running blended lot for AVERAGE

Both the holdings calculator and the history reconstructor drive these
books, so lot selection lives in exactly one place.

Lot Selection:
    FIFO:    oldest lot first (index 0)
    LIFO:    newest lot first (last index)
    HIFO:    highest unit cost first; on a tie, the first such lot in list order
    AVERAGE: disposal removes cost at the running average, computed before
             quantity is reduced

A disposal larger than what is held stops once the book is empty. There
is no overdraft and no error.

Usage:
    engine = LotEngine(LotMethod.FIFO)
    book = engine.build(transactions, trade_currency="USD",
                        base_currency="EUR", fx_snapshots=fx)
    book.quantity, book.lots()

    calculate_average_cost(transactions, LotMethod.HIFO)
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Protocol, Sequence, TYPE_CHECKING, assert_never

from portfolio_engine.models import FxRateSnapshot, LotMethod, Transaction, TransactionType
from portfolio_engine.schemas.validators import coerce_lot_method
from portfolio_engine.services.currency_converter import CurrencyConverter, snapshots_as_of
from portfolio_engine.services.valuation.types import Lot, LotConsumption
from portfolio_engine.utils.date_utils import normalize_timestamp, to_day
from portfolio_engine.utils.numbers import ONE, ZERO, finite_or_zero, safe_divide

if TYPE_CHECKING:
    from portfolio_engine.services.protocols import CurrencyConverterProtocol

logger = logging.getLogger(__name__)

# Transaction types that move lots
LOT_TRANSACTION_TYPES = frozenset({
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.TRANSFER,
})

# The AVERAGE book exposes its blended position under this id
AVERAGE_LOT_ID = 1


# =============================================================================
# TRANSACTION CLASSIFICATION
# =============================================================================

class LotEffect(enum.Enum):
    """What a transaction does to a lot book."""
    ACQUIRE = "acquire"
    DISPOSE = "dispose"
    NONE = "none"


def lot_effect(transaction: Transaction) -> LotEffect:
    """
    Classify a transaction's effect on lots.

    TRANSFER is bidirectional: a non-negative quantity moves units in,
    a negative quantity moves units out. Cash events never touch lots.
    """
    txn_type = transaction.type
    if txn_type is TransactionType.BUY:
        return LotEffect.ACQUIRE
    elif txn_type is TransactionType.SELL:
        return LotEffect.DISPOSE
    elif txn_type is TransactionType.TRANSFER:
        if finite_or_zero(transaction.quantity) >= ZERO:
            return LotEffect.ACQUIRE
        return LotEffect.DISPOSE
    elif (
            txn_type is TransactionType.DEPOSIT
            or txn_type is TransactionType.WITHDRAW
            or txn_type is TransactionType.DIVIDEND
            or txn_type is TransactionType.FEE
    ):
        return LotEffect.NONE
    else:
        assert_never(txn_type)


def disposal_quantity(transaction: Transaction) -> Decimal:
    """Units a disposal removes: the SELL quantity, or |quantity| of a transfer-out."""
    quantity = finite_or_zero(transaction.quantity)
    if transaction.type is TransactionType.TRANSFER:
        return abs(quantity)
    return quantity


def sort_by_trade_date(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Stable ascending sort by normalised trade timestamp."""
    return sorted(transactions, key=lambda t: normalize_timestamp(t.trade_date))


def prepare_lot_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Keep BUY/SELL/TRANSFER and sort them by trade date (stable)."""
    return sort_by_trade_date(t for t in transactions if t.type in LOT_TRANSACTION_TYPES)


# =============================================================================
# LOT BOOKS
# =============================================================================

class LotBook(Protocol):
    """Incremental lot state for one symbol."""

    @property
    def quantity(self) -> Decimal:
        ...

    @property
    def cost_trade(self) -> Decimal:
        ...

    @property
    def cost_base(self) -> Decimal:
        ...

    def acquire(
        self,
        quantity: Decimal,
        unit_cost: Decimal,
        fx_rate: Decimal = ONE,
        trade_currency: str = "",
        acquired_at: datetime | None = None,
        transaction_id: str | None = None,
    ) -> None:
        ...

    def dispose(self, quantity: Decimal) -> list[LotConsumption]:
        ...

    def lots(self) -> list[Lot]:
        ...


class DiscreteLotBook:
    """
    Ordered lots for FIFO, LIFO and HIFO.

    Lots are kept in acquisition order and replaced, never mutated, when
    partially consumed. lot_id is assigned from a counter and is stable
    for the lifetime of the book.
    """

    def __init__(self, method: LotMethod) -> None:
        if method is LotMethod.AVERAGE:
            raise ValueError("DiscreteLotBook does not handle AVERAGE; use AverageCostBook")
        self.method = method
        self._lots: list[Lot] = []
        self._next_id = 1

    @property
    def quantity(self) -> Decimal:
        return sum((lot.quantity for lot in self._lots), ZERO)

    @property
    def cost_trade(self) -> Decimal:
        return sum((lot.cost_trade for lot in self._lots), ZERO)

    @property
    def cost_base(self) -> Decimal:
        return sum((lot.cost_base for lot in self._lots), ZERO)

    def acquire(
            self,
            quantity: Decimal,
            unit_cost: Decimal,
            fx_rate: Decimal = ONE,
            trade_currency: str = "",
            acquired_at: datetime | None = None,
            transaction_id: str | None = None,
    ) -> None:
        """Append a new lot. Non-positive quantities are ignored."""
        quantity = finite_or_zero(quantity)
        if quantity <= ZERO:
            return

        self._lots.append(Lot(
            lot_id=self._next_id,
            quantity=quantity,
            unit_cost=finite_or_zero(unit_cost),
            fx_rate=finite_or_zero(fx_rate),
            trade_currency=trade_currency,
            acquired_at=acquired_at,
            transaction_id=transaction_id,
        ))
        self._next_id += 1

    def dispose(self, quantity: Decimal) -> list[LotConsumption]:
        """
        Consume up to quantity units, one target lot at a time.

        Returns:
            One LotConsumption per lot touched, in consumption order
        """
        remaining = finite_or_zero(quantity)
        consumed: list[LotConsumption] = []

        while remaining > ZERO and self._lots:
            index = self._select_index()
            lot = self._lots[index]
            take = min(remaining, lot.quantity)

            consumed.append(LotConsumption(
                lot_id=lot.lot_id,
                quantity=take,
                unit_cost=lot.unit_cost,
                fx_rate=lot.fx_rate,
            ))

            if take >= lot.quantity:
                del self._lots[index]
            else:
                self._lots[index] = lot.with_quantity(lot.quantity - take)
            remaining -= take

        if remaining > ZERO:
            logger.debug(f"Disposal exceeded held lots by {remaining}, stopping early")

        return consumed

    def lots(self) -> list[Lot]:
        return list(self._lots)

    def _select_index(self) -> int:
        """Index of the lot the next disposal consumes."""
        if self.method is LotMethod.LIFO:
            return len(self._lots) - 1
        if self.method is LotMethod.HIFO:
            # max() keeps the first maximal element
            return max(range(len(self._lots)), key=lambda i: self._lots[i].unit_cost)
        return 0


class AverageCostBook:
    """
    Single blended position for the AVERAGE method.

    Tracks running (quantity, cost in trade currency, cost in base
    currency). A disposal removes cost at the average per unit,
    computed before quantity is reduced.
    """

    method = LotMethod.AVERAGE

    def __init__(self) -> None:
        self._quantity = ZERO
        self._cost_trade = ZERO
        self._cost_base = ZERO
        self._trade_currency = ""
        self._acquired_at: datetime | None = None

    @property
    def quantity(self) -> Decimal:
        return self._quantity

    @property
    def cost_trade(self) -> Decimal:
        return self._cost_trade

    @property
    def cost_base(self) -> Decimal:
        return self._cost_base

    def acquire(
            self,
            quantity: Decimal,
            unit_cost: Decimal,
            fx_rate: Decimal = ONE,
            trade_currency: str = "",
            acquired_at: datetime | None = None,
            transaction_id: str | None = None,
    ) -> None:
        """Blend a purchase into the running position."""
        quantity = finite_or_zero(quantity)
        if quantity <= ZERO:
            return

        cost_trade = quantity * finite_or_zero(unit_cost)
        self._quantity += quantity
        self._cost_trade += cost_trade
        self._cost_base += cost_trade * finite_or_zero(fx_rate)
        self._trade_currency = self._trade_currency or trade_currency
        if self._acquired_at is None:
            self._acquired_at = acquired_at

    def dispose(self, quantity: Decimal) -> list[LotConsumption]:
        take = min(finite_or_zero(quantity), self._quantity)
        if take <= ZERO:
            return []

        avg_cost_trade = self._cost_trade / self._quantity
        avg_cost_base = self._cost_base / self._quantity

        self._quantity -= take
        self._cost_trade -= avg_cost_trade * take
        self._cost_base -= avg_cost_base * take

        if self._quantity <= ZERO:
            self._quantity = ZERO
            self._cost_trade = ZERO
            self._cost_base = ZERO
            self._acquired_at = None

        return [LotConsumption(
            lot_id=AVERAGE_LOT_ID,
            quantity=take,
            unit_cost=avg_cost_trade,
            fx_rate=safe_divide(avg_cost_base, avg_cost_trade, default=ONE),
        )]

    def lots(self) -> list[Lot]:
        """The blended position as one synthetic lot, or [] when flat."""
        if self._quantity <= ZERO:
            return []
        return [Lot(
            lot_id=AVERAGE_LOT_ID,
            quantity=self._quantity,
            unit_cost=self._cost_trade / self._quantity,
            fx_rate=safe_divide(self._cost_base, self._cost_trade, default=ONE),
            trade_currency=self._trade_currency,
            acquired_at=self._acquired_at,
        )]


def create_lot_book(method: LotMethod | str) -> LotBook:
    """
    Build an empty lot book for a cost-basis method.

    Raises:
        InvalidLotMethodError: If method names no known method
    """
    method = coerce_lot_method(method)
    if method is LotMethod.AVERAGE:
        return AverageCostBook()
    elif method is LotMethod.FIFO or method is LotMethod.LIFO or method is LotMethod.HIFO:
        return DiscreteLotBook(method)
    else:
        assert_never(method)


def apply_to_book(
        book: LotBook,
        transaction: Transaction,
        fx_rate: Decimal = ONE,
        trade_currency: str = "",
) -> list[LotConsumption]:
    """
    Apply one transaction to a lot book.

    Acquisitions are costed at unit_price (fees are not capitalised into
    the lot). Disposals consume disposal_quantity(transaction).

    Returns:
        Lots consumed by a disposal, [] otherwise
    """
    effect = lot_effect(transaction)
    quantity = finite_or_zero(transaction.quantity)

    if effect is LotEffect.ACQUIRE:
        book.acquire(
            quantity=quantity,
            unit_cost=finite_or_zero(transaction.unit_price),
            fx_rate=fx_rate,
            trade_currency=trade_currency,
            acquired_at=normalize_timestamp(transaction.trade_date),
            transaction_id=transaction.id,
        )
        return []
    elif effect is LotEffect.DISPOSE:
        return book.dispose(disposal_quantity(transaction))
    elif effect is LotEffect.NONE:
        return []
    else:
        assert_never(effect)


# =============================================================================
# LOT ENGINE
# =============================================================================

class LotEngine:
    """
    Replays one symbol's transactions into a lot book.

    Each acquisition is tagged with an FX rate resolved at its trade day:
    snapshots dated on or before that day first, then the rate recorded
    on the transaction, then 1.
    """

    def __init__(
            self,
            lot_method: LotMethod | str = LotMethod.FIFO,
            converter: CurrencyConverterProtocol | None = None,
    ) -> None:
        self.lot_method = coerce_lot_method(lot_method)
        self._converter = converter or CurrencyConverter()

    def acquisition_rate(
            self,
            transaction: Transaction,
            trade_currency: str,
            base_currency: str,
            fx_snapshots: Sequence[FxRateSnapshot],
    ) -> Decimal:
        """FX rate (trade → base) in force on the transaction's trade day."""
        visible = snapshots_as_of(fx_snapshots, to_day(transaction.trade_date))
        return self._converter.rate(
            trade_currency,
            base_currency,
            visible,
            fallback_rate=finite_or_zero(transaction.fx_rate),
        )

    def build(
            self,
            transactions: Iterable[Transaction],
            trade_currency: str,
            base_currency: str,
            fx_snapshots: Sequence[FxRateSnapshot] = (),
    ) -> LotBook:
        """
        Replay transactions for one symbol.

        Args:
            transactions: Unsorted transactions for a single symbol
            trade_currency: Currency every lot is tagged with
            base_currency: Reporting currency for acquisition rates
            fx_snapshots: Available FX snapshots

        Returns:
            The lot book after every BUY/SELL/TRANSFER has been applied
        """
        book = create_lot_book(self.lot_method)

        for txn in prepare_lot_transactions(transactions):
            fx_rate = ONE
            if lot_effect(txn) is LotEffect.ACQUIRE:
                fx_rate = self.acquisition_rate(txn, trade_currency, base_currency, fx_snapshots)
            apply_to_book(book, txn, fx_rate=fx_rate, trade_currency=trade_currency)

        return book


# =============================================================================
# SAME-CURRENCY HELPERS
# =============================================================================

def _replay_buys_and_sells(
        transactions: Iterable[Transaction],
        lot_method: LotMethod | str,
) -> tuple[LotBook, Decimal]:
    """Replay BUY/SELL at parity; returns the book and realized P/L."""
    book = create_lot_book(lot_method)
    realized = ZERO

    relevant = sort_by_trade_date(
        t for t in transactions if t.type in (TransactionType.BUY, TransactionType.SELL)
    )
    for txn in relevant:
        quantity = finite_or_zero(txn.quantity)
        price = finite_or_zero(txn.unit_price)
        if txn.type is TransactionType.BUY:
            book.acquire(quantity, price)
        else:
            for consumed in book.dispose(quantity):
                realized += consumed.quantity * (price - consumed.unit_cost)

    return book, realized


def calculate_average_cost(
        transactions: Iterable[Transaction],
        lot_method: LotMethod | str = LotMethod.FIFO,
) -> Decimal:
    """
    Average cost per unit of the remaining position, ignoring FX.

    Considers BUY and SELL only. Matches LotEngine's trade-currency
    figures whenever all transactions share one currency.

    Example:
        BUY 10@100, BUY 5@120, SELL 8@150, BUY 5@90
        FIFO → 104.1666..., LIFO/HIFO → 95.8333..., AVERAGE → 99.7222...

    Returns:
        Average cost, or 0 when nothing is held
    """
    book, _ = _replay_buys_and_sells(transactions, lot_method)
    return safe_divide(book.cost_trade, book.quantity)


def calculate_current_quantity(transactions: Iterable[Transaction]) -> Decimal:
    """Units bought minus units sold. Not clamped at zero."""
    total = ZERO
    for txn in transactions:
        if txn.type is TransactionType.BUY:
            total += finite_or_zero(txn.quantity)
        elif txn.type is TransactionType.SELL:
            total -= finite_or_zero(txn.quantity)
    return total


def calculate_realized_pl(
        transactions: Iterable[Transaction],
        lot_method: LotMethod | str = LotMethod.FIFO,
) -> Decimal:
    """
    Realized P/L of SELLs against the lots they consume, ignoring FX.

    Σ consumed quantity × (sell price - lot unit cost). Fees are excluded.
    """
    _, realized = _replay_buys_and_sells(transactions, lot_method)
    return realized


def calculate_unrealized_pl(quantity: Decimal, avg_cost: Decimal, current_price: Decimal) -> Decimal:
    """quantity × (current_price - avg_cost)."""
    return quantity * (current_price - avg_cost)
