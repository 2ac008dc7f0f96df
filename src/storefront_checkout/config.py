"""Configuration surface for the checkout computation core."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .constants import CouponDefaults


class CheckoutSettings(BaseSettings):
    """Checkout core configuration."""

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    default_currency: str = "INR"

    # Coupon warnings
    expiry_warning_days: int = Field(default=CouponDefaults.EXPIRY_WARNING_DAYS, ge=0)
    low_remaining_uses_threshold: int = Field(default=CouponDefaults.LOW_REMAINING_USES, ge=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_prefix = "STOREFRONT_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("default_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("default_currency must be a three-letter ISO 4217 code")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v


@lru_cache
def get_settings(env_file: str | None = None) -> CheckoutSettings:
    """Load CheckoutSettings once per process so evaluations stay consistent."""
    if env_file:
        return CheckoutSettings(_env_file=Path(env_file))
    # Falls back to the class-level ``.env`` lookup
    return CheckoutSettings()
