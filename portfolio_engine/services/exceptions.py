# portfolio_engine/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
An embedding web layer maps them to responses (ValidationError → 422, etc.).

Bad values inside well-formed records never raise: a missing FX rate,
a missing quote or an unknown symbol degrade the result instead (see the
calculators). Exceptions are reserved for arguments the engine cannot
interpret at all.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidInputError       - collection argument is not a list of records
    │   └── InvalidLotMethodError   - unknown cost-basis method name
    └── FXRateError
        └── FXConversionError       - a rate that cannot be used (e.g. inverting 0)
"""


class ServiceError(Exception):
    """
    Root of every error the engine raises on purpose.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    An argument handed to the engine is unusable.

    Attributes:
        field: Name of the offending argument, if known
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidInputError(ValidationError):
    """
    A collection argument is not a list of records, or one record in it
    does not fit the record model.

    Example:
        get_holdings("p-1", transactions=None, ...)
        → Invalid input for 'transactions': expected a list of records, got None
    """

    def __init__(self, field: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid input for '{field}': {reason}", field=field)


class InvalidLotMethodError(ValidationError):
    """Unknown cost-basis method. Accepted (any case): FIFO, LIFO, HIFO, AVERAGE."""

    def __init__(self, lot_method: object) -> None:
        self.lot_method = lot_method
        super().__init__(
            f"Invalid lot method: '{lot_method}'. Valid options: FIFO, LIFO, HIFO, AVERAGE",
            field="lot_method",
        )


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Problem with an exchange rate for a currency pair.

    Attributes:
        base_currency: Currency being converted from, if known
        quote_currency: Currency being converted to, if known
    """

    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXConversionError(FXRateError):
    """
    A rate cannot be used for arithmetic, e.g. inverting a zero or NaN rate.

    The converter skips non-positive snapshots before inverting, so this
    only surfaces when invert_rate() is called directly with bad data.

    Attributes:
        reason: What was wrong with the rate
    """

    def __init__(
            self,
            reason: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            f"FX conversion error: {reason}",
            base_currency=base_currency,
            quote_currency=quote_currency,
        )


__all__ = [
    "ServiceError",
    "ValidationError",
    "InvalidInputError",
    "InvalidLotMethodError",
    "FXRateError",
    "FXConversionError",
]
