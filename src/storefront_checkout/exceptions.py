"""Exception hierarchy for the checkout computation core.

Only malformed input and internal guards raise. Business ineligibility
(an expired coupon, an unmet minimum order) is reported through
``DiscountResult.reason`` and never raised.

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a response payload
"""
from __future__ import annotations

from typing import Any, Optional


class CheckoutCoreError(Exception):
    """Base exception for all checkout core errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "CHECKOUT_CORE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class CheckoutValidationError(CheckoutCoreError):
    """Malformed, missing or out-of-range input."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class ComputationError(CheckoutCoreError):
    """Arithmetic guard tripped (e.g. a zero amortization denominator)."""

    error_code = "COMPUTATION_ERROR"


class CatalogError(CheckoutCoreError):
    """Coupon catalog is unusable in its current state."""

    error_code = "CATALOG_ERROR"
