# portfolio_engine/utils/numbers.py
"""
Decimal helpers shared by the calculators.

All financial values are Decimal. These helpers keep malformed inputs
(NaN, Infinity, None) from leaking into running totals.
"""

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def finite_or_zero(value: Decimal | int | float | None) -> Decimal:
    """
    Coerce a numeric value to a finite Decimal, or 0.

    Examples:
        >>> finite_or_zero(Decimal("NaN"))
        Decimal('0')
        >>> finite_or_zero(None)
        Decimal('0')
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if not value.is_finite():
        return ZERO
    return value


def is_positive(value: Decimal | None) -> bool:
    """True if value is a finite Decimal strictly greater than zero."""
    return value is not None and value.is_finite() and value > ZERO


def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    """Divide, returning default when the denominator is zero or not finite."""
    if not denominator.is_finite() or denominator == ZERO:
        return default
    return numerator / denominator


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """100 × part / whole, or 0 when whole is zero."""
    return safe_divide(part * HUNDRED, whole)


def round2(value: Decimal) -> Decimal:
    """Round to 2 decimal places (half up); non-finite values become 0."""
    return finite_or_zero(value).quantize(CENT, rounding=ROUND_HALF_UP)
