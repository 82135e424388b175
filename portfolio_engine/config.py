# portfolio_engine/config.py
"""
Engine configuration using Pydantic Settings.

Values come from environment variables (or a .env file at the project root):
- LOG_LEVEL / LOG_FORMAT: Logging setup (see utils.logging)
- BASE_CURRENCY: Default reporting currency for valuations
- DEFAULT_LOT_METHOD: Cost-basis method used when the caller passes none
- HISTORY_LOCALE: Locale for display labels in history series

Settings are validated when the module is imported; a bad value fails
fast with a pydantic ValidationError naming the field.

Usage:
    from portfolio_engine.config import settings

    lot_method = settings.default_lot_method
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_engine.models import LotMethod

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Optional .env next to the package directory
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    """
    Engine settings.

    Every field can be overridden by the upper-cased environment variable
    of the same name, e.g. BASE_CURRENCY=EUR. Defaults:
        log_level=INFO, log_format=text, base_currency=USD,
        default_lot_method=FIFO, history_locale=en-US
    """

    log_level: str = Field(
        default="INFO",
        description="Root logger level: " + ", ".join(_LOG_LEVELS)
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    # -------------------------------------------------------------------------
    # Valuation defaults
    # -------------------------------------------------------------------------
    base_currency: str = Field(
        default="USD",
        min_length=1,
        description="Reporting currency used when the caller passes none"
    )
    default_lot_method: LotMethod = Field(
        default=LotMethod.FIFO,
        description="Cost-basis method used when the caller passes none"
    )
    history_locale: str = Field(
        default="en-US",
        description="Locale for display labels in history series"
    )

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.is_file() else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_currency")
    @classmethod
    def normalize_base_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got '{v}'")
        return level

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v


settings = Settings()
