# portfolio_engine/schemas/validators.py
"""
Reusable validation functions for engine inputs.

This module provides:
- Record collection validation (lists of transactions, symbols, quotes...)
- Cost-basis method coercion
- Currency code normalization (re-exported from models)

The calculators degrade gracefully on bad values inside records, but a
collection argument that is not a sequence at all fails fast here.
"""

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from portfolio_engine.models import LotMethod, normalize_currency
from portfolio_engine.services.exceptions import InvalidInputError, InvalidLotMethodError

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# RECORD COLLECTIONS
# =============================================================================

def validate_records(value: Any, model: type[ModelT], field: str) -> list[ModelT]:
    """
    Validate a collection argument and coerce its items to a record model.

    Accepts lists and tuples. Items that are already instances of the model
    are kept as-is; mappings and attribute-bearing objects are validated
    into the model.

    Args:
        value: The argument to validate
        model: Record model each item must satisfy
        field: Argument name, used in error messages

    Returns:
        A new list of model instances, in input order

    Raises:
        InvalidInputError: If value is not a sequence (None, str, mapping,
                           scalar...) or an item cannot be coerced
    """
    if value is None:
        raise InvalidInputError(field, "expected a list of records, got None")

    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
        raise InvalidInputError(
            field, f"expected a list of records, got {type(value).__name__}"
        )

    records: list[ModelT] = []
    for index, item in enumerate(value):
        if isinstance(item, model):
            records.append(item)
            continue
        try:
            records.append(model.model_validate(item, from_attributes=True))
        except PydanticValidationError as exc:
            raise InvalidInputError(
                field, f"item {index} is not a valid {model.__name__}: {exc.error_count()} error(s)"
            ) from exc

    return records


# =============================================================================
# LOT METHOD
# =============================================================================

def coerce_lot_method(value: LotMethod | str) -> LotMethod:
    """
    Coerce a lot method given as enum member or string.

    Args:
        value: LotMethod or case-insensitive name ("fifo", "HIFO")

    Returns:
        The LotMethod member

    Raises:
        InvalidLotMethodError: If value names no known method
    """
    if isinstance(value, LotMethod):
        return value
    if isinstance(value, str):
        try:
            return LotMethod(value.strip().upper())
        except ValueError:
            raise InvalidLotMethodError(value) from None
    raise InvalidLotMethodError(value)

