"""
Centralized constants for the checkout computation core.

Usage:
    from storefront_checkout.constants import CardRules, CouponDefaults
"""
from __future__ import annotations

from typing import Final


class CardRules:
    """Payment card structural limits."""

    MIN_LENGTH: Final[int] = 13
    MAX_LENGTH: Final[int] = 19
    AMEX_CVV_LENGTH: Final[int] = 4
    DEFAULT_CVV_LENGTH: Final[int] = 3
    MIN_HOLDER_NAME_LENGTH: Final[int] = 3
    VISIBLE_DIGITS: Final[int] = 4


class CouponDefaults:
    """Defaults applied to coupon evaluation."""

    EXPIRY_WARNING_DAYS: Final[int] = 7
    LOW_REMAINING_USES: Final[int] = 10
    BUY_QUANTITY: Final[int] = 1
    GET_QUANTITY: Final[int] = 1


class AmortizationRules:
    """Installment schedule limits."""

    MONTHS_PER_YEAR: Final[int] = 12
    # Guard against schedules that would not be bounded work
    MAX_PERIODS: Final[int] = 600


class LoggingConfig:
    """Log masking configuration."""

    CARD_MASK_CHAR: Final[str] = "*"
