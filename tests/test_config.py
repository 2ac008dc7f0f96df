"""
Tests for settings and the exception hierarchy.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from storefront_checkout.config import CheckoutSettings, get_settings
from storefront_checkout.exceptions import (
    CatalogError,
    CheckoutCoreError,
    CheckoutValidationError,
    ComputationError,
)


class TestCheckoutSettings:
    """Tests for CheckoutSettings."""

    def test_defaults(self):
        settings = CheckoutSettings()

        assert settings.default_currency == "INR"
        assert settings.expiry_warning_days == 7
        assert settings.low_remaining_uses_threshold == 10

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_EXPIRY_WARNING_DAYS", "3")
        monkeypatch.setenv("STOREFRONT_LOW_REMAINING_USES_THRESHOLD", "25")
        monkeypatch.setenv("STOREFRONT_LOG_LEVEL", "debug")

        settings = CheckoutSettings()

        assert settings.expiry_warning_days == 3
        assert settings.low_remaining_uses_threshold == 25
        assert settings.log_level == "DEBUG"

    def test_currency_is_normalized(self):
        assert CheckoutSettings(default_currency=" usd ").default_currency == "USD"

    @pytest.mark.parametrize("currency", ["US", "RUPEE", "12A"])
    def test_invalid_currency(self, currency):
        with pytest.raises(ValidationError):
            CheckoutSettings(default_currency=currency)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            CheckoutSettings(log_level="chatty")

    def test_negative_threshold(self):
        with pytest.raises(ValidationError):
            CheckoutSettings(expiry_warning_days=-1)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_get_settings_reads_dotenv(self, tmp_path, monkeypatch):
        """A ``.env`` file in the working directory is picked up."""
        (tmp_path / ".env").write_text("STOREFRONT_EXPIRY_WARNING_DAYS=42\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("STOREFRONT_EXPIRY_WARNING_DAYS", raising=False)
        get_settings.cache_clear()
        try:
            assert get_settings().expiry_warning_days == 42
        finally:
            get_settings.cache_clear()

    def test_get_settings_explicit_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / "checkout.env"
        env_file.write_text("STOREFRONT_LOW_REMAINING_USES_THRESHOLD=3\n")
        monkeypatch.delenv("STOREFRONT_LOW_REMAINING_USES_THRESHOLD", raising=False)
        get_settings.cache_clear()
        try:
            assert get_settings(str(env_file)).low_remaining_uses_threshold == 3
        finally:
            get_settings.cache_clear()


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_base_error(self):
        error = CheckoutCoreError("Something broke")

        assert error.to_dict() == {
            "error": "CHECKOUT_CORE_ERROR",
            "message": "Something broke",
        }

    def test_validation_error_carries_field(self):
        error = CheckoutValidationError("subtotal must be >= 0", field="subtotal")

        assert error.field == "subtotal"
        assert error.error_code == "VALIDATION_ERROR"
        assert error.to_dict()["details"] == {"field": "subtotal"}

    def test_subclasses(self):
        assert issubclass(CheckoutValidationError, CheckoutCoreError)
        assert issubclass(ComputationError, CheckoutCoreError)
        assert issubclass(CatalogError, CheckoutCoreError)

    def test_details(self):
        error = ComputationError("Annuity denominator is zero", details={"periods": 6})

        assert error.to_dict() == {
            "error": "COMPUTATION_ERROR",
            "message": "Annuity denominator is zero",
            "details": {"periods": 6},
        }
        assert str(error) == "Annuity denominator is zero"
