# portfolio_engine/services/constants.py
"""
Centralized constants for the Portfolio Engine services.

Single source of truth for the business constants used by the
calculators. Values that a deployment may want to change per environment
live in config.Settings instead.

Usage:
    from portfolio_engine.services.constants import (
        DAILY_PL_ESTIMATE_RATIO,
        DEFAULT_BASE_CURRENCY,
    )
"""

from decimal import Decimal


# =============================================================================
# CURRENCY DEFAULTS
# =============================================================================

# Reporting currency used when neither the caller nor settings supply one
DEFAULT_BASE_CURRENCY: str = "USD"


# =============================================================================
# DAILY P/L ESTIMATE
# =============================================================================

# There is no intraday price feed, so daily P/L is approximated as a fixed
# share of total unrealized P/L. Results carry daily_pl_is_estimated=True.
DAILY_PL_ESTIMATE_RATIO: Decimal = Decimal("0.1")


# =============================================================================
# HISTORY
# =============================================================================

# Locale for history display labels when neither caller nor settings supply one
DEFAULT_HISTORY_LOCALE: str = "en-US"
