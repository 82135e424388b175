# tests/test_config.py
"""
Tests for engine settings.
"""

import pytest
from pydantic import ValidationError

from portfolio_engine.config import Settings
from portfolio_engine.models import LotMethod


class TestSettings:
    """Tests for Settings loading and validation."""

    def test_defaults(self, monkeypatch):
        for name in ("BASE_CURRENCY", "DEFAULT_LOT_METHOD", "HISTORY_LOCALE", "LOG_FORMAT", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.base_currency == "USD"
        assert settings.default_lot_method is LotMethod.FIFO
        assert settings.history_locale == "en-US"
        assert settings.log_format == "text"
        assert settings.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("BASE_CURRENCY", " chf ")
        monkeypatch.setenv("DEFAULT_LOT_METHOD", "HIFO")
        monkeypatch.setenv("LOG_FORMAT", "JSON")

        settings = Settings(_env_file=None)

        assert settings.base_currency == "CHF"
        assert settings.default_lot_method is LotMethod.HIFO
        assert settings.log_format == "json"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_lot_method": "NEWEST"},
            {"log_format": "xml"},
            {"log_level": "VERBOSE"},
            {"base_currency": ""},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_log_level_normalized(self):
        """Should accept any case and store the upper-cased level name."""
        assert Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"
