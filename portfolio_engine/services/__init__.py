# portfolio_engine/services/__init__.py
"""
Service layer for valuation logic.

Services:
- Have NO knowledge of HTTP or persistence
- Raise domain-specific exceptions
- Receive all input records as parameters
- Are easily testable via dependency injection

Usage:
    from portfolio_engine.services import CurrencyConverter
    from portfolio_engine.services import ServiceError, InvalidInputError
    from portfolio_engine.services.valuation import ValuationService

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Business constants
    ├── protocols.py                 # Service interfaces (Protocol classes)
    ├── currency_converter.py        # FX rate resolution chain
    └── valuation/                   # Valuation service
        ├── service.py               # Main valuation orchestrator
        ├── types.py                 # Valuation data types
        ├── lot_engine.py            # Lot accounting
        ├── calculators.py           # Point-in-time calculations
        └── history_calculator.py    # Daily series reconstruction
"""

# Exceptions
from portfolio_engine.services.exceptions import (
    ServiceError,
    ValidationError,
    InvalidInputError,
    InvalidLotMethodError,
    FXRateError,
    FXConversionError,
)
# Currency conversion
from portfolio_engine.services.currency_converter import (
    CurrencyConverter,
    FXRateResult,
    FXRateSource,
    snapshots_as_of,
)

__all__ = [
    # Exceptions
    "ServiceError",
    "ValidationError",
    "InvalidInputError",
    "InvalidLotMethodError",
    "FXRateError",
    "FXConversionError",
    # Currency conversion
    "CurrencyConverter",
    "FXRateResult",
    "FXRateSource",
    "snapshots_as_of",
]
