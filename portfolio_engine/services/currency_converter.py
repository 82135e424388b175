# portfolio_engine/services/currency_converter.py
"""
Currency conversion from a set of FX snapshots.

=============================================================================
FX RATE CONVENTION
=============================================================================

Snapshots are directional:

    FxRateSnapshot(base_currency="EUR", quote_currency="USD", rate=1.10)

    Meaning: 1 EUR = 1.10 USD

The converter answers "how many units of the reporting currency is one
unit of the trade currency worth", so converting a trade amount is:

    amount_base = amount_trade × converter.rate(trade_ccy, base_ccy, snapshots)

=============================================================================
RESOLUTION CHAIN
=============================================================================

A rate is resolved by trying an ordered chain of strategies; the first
one that produces a rate wins:

    1. identity  - same currency, or either side empty  → 1
    2. direct    - snapshot (trade → base)             → rate
    3. inverse   - snapshot (base → trade)             → 1 / rate
    4. fallback  - caller-supplied positive rate       → fallback_rate
    5. unity     - nothing matched                     → 1

A missing rate never raises. Valuations prefer a number over a blank
screen, so the unity strategy always terminates the chain.

When several snapshots match a pair the latest asof wins; undated
snapshots rank below dated ones and, among equals, the later input
entry wins.

Usage:
    from portfolio_engine.services.currency_converter import CurrencyConverter

    converter = CurrencyConverter()
    rate = converter.rate("EUR", "USD", fx_snapshots)
    result = converter.resolve("EUR", "USD", fx_snapshots, fallback_rate=Decimal("1.08"))
    result.source  # FXRateSource.DIRECT
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, Sequence

from portfolio_engine.models import FxRateSnapshot, normalize_currency
from portfolio_engine.services.exceptions import FXConversionError
from portfolio_engine.utils.date_utils import normalize_timestamp, to_day
from portfolio_engine.utils.numbers import ONE, ZERO, is_positive

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

class FXRateSource(str, enum.Enum):
    """Which step of the resolution chain produced a rate."""
    IDENTITY = "identity"
    DIRECT = "direct"
    INVERSE = "inverse"
    FALLBACK = "fallback"
    UNITY = "unity"


@dataclass(frozen=True)
class FXRateResult:
    """Result of an FX rate lookup: 1 base_currency = rate quote_currency."""

    base_currency: str
    quote_currency: str
    rate: Decimal
    source: FXRateSource

    @property
    def is_fallback(self) -> bool:
        """True if no snapshot (direct or inverse) backed the rate."""
        return self.source in (FXRateSource.FALLBACK, FXRateSource.UNITY)


@dataclass(frozen=True)
class RateQuery:
    """Normalised input handed to each strategy."""

    trade_currency: str
    base_currency: str
    fx_snapshots: Sequence[FxRateSnapshot]
    fallback_rate: Decimal | None = None


# =============================================================================
# SNAPSHOT HELPERS
# =============================================================================

def invert_rate(rate: Decimal) -> Decimal:
    """
    Invert an exchange rate.

    If rate is EUR/USD = 1.25, inverted is USD/EUR = 0.8

    Raises:
        FXConversionError: If rate is zero or not finite
    """
    if not rate.is_finite() or rate == ZERO:
        raise FXConversionError(f"Cannot invert rate {rate}")
    return ONE / rate


def _recency_key(snapshot_asof: datetime | date | None, position: int) -> tuple[int, datetime, int]:
    if snapshot_asof is None:
        return (0, datetime.min, position)
    return (1, normalize_timestamp(snapshot_asof), position)


def latest_snapshot(
        fx_snapshots: Sequence[FxRateSnapshot],
        base_currency: str,
        quote_currency: str,
) -> FxRateSnapshot | None:
    """
    Find the most recent usable snapshot for a directional pair.

    Only snapshots with a positive, finite rate are considered.

    Returns:
        The matching snapshot with the latest asof, or None
    """
    best: FxRateSnapshot | None = None
    best_key: tuple[int, datetime, int] | None = None

    for position, snapshot in enumerate(fx_snapshots):
        if snapshot.base_currency != base_currency or snapshot.quote_currency != quote_currency:
            continue
        if not is_positive(snapshot.rate):
            continue
        key = _recency_key(snapshot.asof, position)
        if best_key is None or key > best_key:
            best, best_key = snapshot, key

    return best


def snapshots_as_of(fx_snapshots: Sequence[FxRateSnapshot], day: date) -> list[FxRateSnapshot]:
    """
    Keep the snapshots visible on the given day.

    Dated snapshots count from their own day on. Undated ones carry no
    point in time and are always visible; latest_snapshot() ranks them
    below any dated match.
    """
    return [s for s in fx_snapshots if s.asof is None or to_day(s.asof) <= day]


# =============================================================================
# STRATEGIES
# =============================================================================

class RateStrategy(Protocol):
    """One step of the resolution chain. Returns None to pass."""

    source: FXRateSource

    def resolve(self, query: RateQuery) -> Decimal | None:
        ...


class IdentityRateStrategy:
    """Same currency on both sides, or either side unknown."""

    source = FXRateSource.IDENTITY

    def resolve(self, query: RateQuery) -> Decimal | None:
        if not query.trade_currency or not query.base_currency:
            return ONE
        if query.trade_currency == query.base_currency:
            return ONE
        return None


class DirectRateStrategy:
    """Snapshot quoted as trade → base."""

    source = FXRateSource.DIRECT

    def resolve(self, query: RateQuery) -> Decimal | None:
        snapshot = latest_snapshot(query.fx_snapshots, query.trade_currency, query.base_currency)
        return snapshot.rate if snapshot else None


class InverseRateStrategy:
    """Snapshot quoted as base → trade, inverted."""

    source = FXRateSource.INVERSE

    def resolve(self, query: RateQuery) -> Decimal | None:
        snapshot = latest_snapshot(query.fx_snapshots, query.base_currency, query.trade_currency)
        return invert_rate(snapshot.rate) if snapshot else None


class FallbackRateStrategy:
    """Caller-supplied rate, typically the one recorded with a trade."""

    source = FXRateSource.FALLBACK

    def resolve(self, query: RateQuery) -> Decimal | None:
        if is_positive(query.fallback_rate):
            return query.fallback_rate
        return None


class UnityRateStrategy:
    """Terminal step: assume parity."""

    source = FXRateSource.UNITY

    def resolve(self, query: RateQuery) -> Decimal | None:
        return ONE


DEFAULT_STRATEGIES: tuple[RateStrategy, ...] = (
    IdentityRateStrategy(),
    DirectRateStrategy(),
    InverseRateStrategy(),
    FallbackRateStrategy(),
    UnityRateStrategy(),
)


# =============================================================================
# CONVERTER
# =============================================================================

class CurrencyConverter:
    """
    Resolves conversion rates by walking an ordered strategy chain.

    Stateless; one instance can be shared by any number of callers.
    """

    def __init__(self, strategies: Sequence[RateStrategy] | None = None) -> None:
        self._strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    def resolve(
            self,
            trade_currency: str | None,
            base_currency: str | None,
            fx_snapshots: Sequence[FxRateSnapshot],
            fallback_rate: Decimal | None = None,
    ) -> FXRateResult:
        """
        Resolve the rate for 1 trade_currency expressed in base_currency.

        Args:
            trade_currency: Currency the amount is denominated in
            base_currency: Reporting currency
            fx_snapshots: Available directional snapshots
            fallback_rate: Used if no snapshot matches; ignored unless positive

        Returns:
            FXRateResult with the rate and the strategy that produced it
        """
        query = RateQuery(
            trade_currency=normalize_currency(trade_currency),
            base_currency=normalize_currency(base_currency),
            fx_snapshots=fx_snapshots,
            fallback_rate=fallback_rate,
        )

        for strategy in self._strategies:
            rate = strategy.resolve(query)
            if rate is None:
                continue
            if strategy.source in (FXRateSource.FALLBACK, FXRateSource.UNITY):
                logger.debug(
                    f"No FX snapshot for {query.trade_currency}/{query.base_currency}, "
                    f"using {strategy.source.value} rate {rate}"
                )
            return FXRateResult(
                base_currency=query.trade_currency,
                quote_currency=query.base_currency,
                rate=rate,
                source=strategy.source,
            )

        # Custom chains may omit the unity step
        logger.debug(
            f"Strategy chain exhausted for {query.trade_currency}/{query.base_currency}, using 1"
        )
        return FXRateResult(
            base_currency=query.trade_currency,
            quote_currency=query.base_currency,
            rate=ONE,
            source=FXRateSource.UNITY,
        )

    def rate(
            self,
            trade_currency: str | None,
            base_currency: str | None,
            fx_snapshots: Sequence[FxRateSnapshot],
            fallback_rate: Decimal | None = None,
    ) -> Decimal:
        """Shorthand for resolve(...).rate."""
        return self.resolve(trade_currency, base_currency, fx_snapshots, fallback_rate).rate
