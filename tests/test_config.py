"""Tests for settings and statutory rules."""

from decimal import Decimal

import pytest

from quota_engine.config import QuotaRules, Settings


class TestQuotaRules:
    """Rule defaults and validation."""

    def test_defaults(self):
        rules = QuotaRules()
        assert rules.corporate_waiting_days == 21
        assert rules.individual_waiting_days == 7
        assert rules.job_order_validity_days == 60
        assert rules.permit_validity_months == 12
        assert rules.additional_rate == Decimal("0.05")
        assert rules.rate_ceiling == Decimal("0.40")
        assert rules.labor_count_window_months == 12
        assert rules.exclude_expired_permits is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"corporate_waiting_days": -1},
            {"permit_validity_months": 0},
            {"labor_count_window_months": 0},
            {"additional_rate": Decimal("0")},
            {"rate_ceiling": Decimal("1.5")},
            {"urgent_days": 200, "extension_window_days": 120},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            QuotaRules(**overrides)

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("QUOTA_CORPORATE_WAITING_DAYS", "14")
        monkeypatch.setenv("QUOTA_RATE_CEILING", "0.35")
        monkeypatch.setenv("QUOTA_EXCLUDE_EXPIRED_PERMITS", "false")

        rules = QuotaRules.from_env()

        assert rules.corporate_waiting_days == 14
        assert rules.rate_ceiling == Decimal("0.35")
        assert rules.exclude_expired_permits is False
        assert rules.individual_waiting_days == 7

    def test_rules_are_frozen(self):
        rules = QuotaRules()
        with pytest.raises(AttributeError):
            rules.additional_rate = Decimal("0.10")  # type: ignore[misc]


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./quota.db")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("DB_RETRY_ATTEMPTS", "5")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite+aiosqlite:///./quota.db"
        assert settings.port == 9000
        assert settings.debug is True
        assert settings.db_retry_attempts == 5
