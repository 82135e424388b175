# portfolio_engine/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Existing classes satisfy protocols without modification
- Test doubles work without explicit inheritance
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from portfolio_engine.models import FxRateSnapshot
    from portfolio_engine.services.currency_converter import FXRateResult


class CurrencyConverterProtocol(Protocol):
    """Interface required by HoldingsCalculator and the lot engine."""

    def rate(
        self,
        trade_currency: str | None,
        base_currency: str | None,
        fx_snapshots: Sequence[FxRateSnapshot],
        fallback_rate: Decimal | None = None,
    ) -> Decimal:
        ...

    def resolve(
        self,
        trade_currency: str | None,
        base_currency: str | None,
        fx_snapshots: Sequence[FxRateSnapshot],
        fallback_rate: Decimal | None = None,
    ) -> FXRateResult:
        ...
