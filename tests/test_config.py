"""Tests for settings loading."""

import pytest
from uuid import uuid4

from finledger.config import LedgerSettings, StoreSettings, get_settings, validate_all_settings
from finledger.models import Account


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.max_catch_up_occurrences == 5000
        assert settings.upcoming_recurring_days == 30
        assert StoreSettings().read_retry_attempts == 3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_UPCOMING_RECURRING_DAYS", "14")
        monkeypatch.setenv("LEDGER_STORE_READ_RETRY_ATTEMPTS", "5")
        assert get_settings().ledger.upcoming_recurring_days == 14
        assert get_settings().store.read_retry_attempts == 5

    def test_currency_is_upper_cased(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEFAULT_CURRENCY", "eur")
        assert LedgerSettings().default_currency == "EUR"
        assert Account(user_id=uuid4(), name="Euro card").currency == "EUR"

    def test_out_of_range_value_rejected(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORE_READ_RETRY_ATTEMPTS", "0")
        with pytest.raises(ValueError):
            StoreSettings()

    def test_validate_all_settings(self, monkeypatch):
        assert validate_all_settings() == {"ledger": True, "store": True}
        monkeypatch.setenv("LEDGER_MAX_CATCH_UP_OCCURRENCES", "zero")
        results = validate_all_settings()
        assert results["ledger"] is False
        assert "ledger_error" in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
