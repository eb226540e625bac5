# backend/tests/unit/core/test_config.py
"""
Unit tests for engine settings.
"""

import pytest

from studio_engine.core.config import Settings
from studio_engine.schemas.settlement import SettlementPolicy


class TestSettingsDefaults:
    def test_booking_defaults(self, monkeypatch):
        monkeypatch.delenv("BOOKING_CREDIT_PRICE_HUF", raising=False)
        monkeypatch.delenv("BOOKING_CANCELLATION_WINDOW_HOURS", raising=False)
        config = Settings(_env_file=None)
        assert config.credit_price_huf == 1000
        assert config.cancellation_window_hours == 24
        assert config.default_currency == "HUF"
        assert config.timezone == "Europe/Budapest"

    def test_environment_is_forced_to_test_under_pytest(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        assert Settings(_env_file=None).environment == "test"


class TestSettingsOverrides:
    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("BOOKING_CREDIT_PRICE_HUF", "1500")
        monkeypatch.setenv("SETTLEMENT_BILL_LATE_CANCELLATION", "true")
        config = Settings(_env_file=None)
        assert config.credit_price_huf == 1500
        assert config.bill_late_cancellation is True

    def test_field_names_are_accepted(self):
        config = Settings(_env_file=None, credit_price_huf=2000, default_currency=" eur ")
        assert config.credit_price_huf == 2000
        assert config.default_currency == "EUR"

    def test_negative_credit_price_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, credit_price_huf=-1)

    def test_is_sqlite(self):
        assert Settings(_env_file=None, database_url="sqlite://").is_sqlite
        assert not Settings(_env_file=None, database_url="postgresql://u@h/db").is_sqlite


class TestSettlementPolicyFromSettings:
    def test_defaults_bill_attended_only(self):
        policy = SettlementPolicy.from_settings(Settings(_env_file=None))
        assert not policy.bills_no_shows
        assert not policy.bill_late_cancellation

    def test_flags_are_copied(self):
        policy = SettlementPolicy.from_settings(
            Settings(_env_file=None, bill_no_show_trainer_fee=True, late_cancellation_hours=12)
        )
        assert policy.bills_no_shows
        assert policy.bill_no_show_trainer_fee
        assert not policy.bill_no_show_entry_fee
        assert policy.late_cancellation_hours == 12
