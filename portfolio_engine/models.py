# portfolio_engine/models.py
"""
Input records consumed by the engine.

These are immutable snapshots handed over by the persistence and
market-data layers. The engine never mutates them; it only reads them
and returns derived results (see services/valuation/types.py).

Numeric fields accept int, float, str or Decimal and are stored as Decimal.
NaN and Infinity are accepted here and neutralised by the calculators, so a
single malformed row cannot abort a whole valuation.
"""
import enum
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Enums are closed: every consumer that switches on them must handle all members
class TransactionType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    TRANSFER = "TRANSFER"

    # Cash movements, ignored by lot accounting
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    DIVIDEND = "DIVIDEND"
    FEE = "FEE"


class LotMethod(str, enum.Enum):
    """Cost-basis method used to pick which lots a disposal consumes."""
    FIFO = "FIFO"  # oldest lot first
    LIFO = "LIFO"  # newest lot first
    HIFO = "HIFO"  # highest unit cost first
    AVERAGE = "AVERAGE"  # single blended lot


class AssetType(str, enum.Enum):
    EQUITY = "EQUITY"
    ETF = "ETF"
    CRYPTO = "CRYPTO"
    FUND = "FUND"
    FX = "FX"


def normalize_currency(v: str | None) -> str:
    """Trim and uppercase a currency code; None becomes "". No ISO check."""
    return (v or "").strip().upper()


class Transaction(BaseModel):
    """
    A single trade or cash event recorded against a portfolio.

    fx_rate is the rate recorded with the trade:
    1 unit of trade_currency = fx_rate units of the base currency.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    portfolio_id: str
    symbol_id: str | None = None
    type: TransactionType
    quantity: Decimal = Field(allow_inf_nan=True)
    unit_price: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    fee: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    fx_rate: Decimal = Field(default=Decimal("1"), allow_inf_nan=True)
    trade_currency: str = "USD"
    trade_date: datetime | date
    notes: str | None = None

    @field_validator("trade_currency", mode="before")
    @classmethod
    def normalize_trade_currency(cls, v: str | None) -> str:
        return normalize_currency(v)


class Symbol(BaseModel):
    """An instrument referenced by transactions and quotes."""

    model_config = ConfigDict(frozen=True)

    id: str
    ticker: str
    name: str | None = None
    asset_type: AssetType = AssetType.EQUITY
    exchange: str | None = None
    quote_currency: str = "USD"

    @field_validator("quote_currency", mode="before")
    @classmethod
    def normalize_quote_currency(cls, v: str | None) -> str:
        return normalize_currency(v)

    @property
    def display_name(self) -> str:
        """Name for display, falling back to the ticker."""
        return self.name or self.ticker


class QuoteSnapshot(BaseModel):
    """A point-in-time price observation for one symbol."""

    model_config = ConfigDict(frozen=True)

    symbol_id: str
    price: Decimal = Field(allow_inf_nan=True)
    asof: datetime | date | None = None


class FxRateSnapshot(BaseModel):
    """
    A directional exchange-rate observation.

    1 unit of base_currency = rate units of quote_currency.
    """

    model_config = ConfigDict(frozen=True)

    base_currency: str
    quote_currency: str
    rate: Decimal = Field(allow_inf_nan=True)
    asof: datetime | date | None = None

    @field_validator("base_currency", "quote_currency", mode="before")
    @classmethod
    def normalize_codes(cls, v: str | None) -> str:
        return normalize_currency(v)


class PortfolioRef(BaseModel):
    """Identity of a portfolio taking part in a consolidated view."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class HistoryOptions(BaseModel):
    """Options for history reconstruction."""

    model_config = ConfigDict(frozen=True)

    locale: str | None = None
    end_date: datetime | date | None = None
