"""Coupon rule evaluation.

Evaluates one coupon against one cart snapshot at an injected instant:

1. Active flag, then the validity window (both bounds inclusive)
2. Usage limit, then the customer restrictions when a customer is given
3. Minimum order value
4. Product/category scope
5. Stacking against an already-applied coupon

and, when every check passes, computes the discount amount with the
calculator registered for the coupon's kind. Nothing here mutates the
coupon; usage counts are owned by order placement.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from .config import CheckoutSettings, get_settings
from .exceptions import CheckoutValidationError
from .models import (
    CartSnapshot,
    Coupon,
    CustomerContext,
    DiscountKind,
    DiscountResult,
    FailureReason,
)
from .money import HUNDRED, percent_of, savings_percentage, to_decimal, validate_minor_amount

logger = logging.getLogger(__name__)


class _Ineligible(Exception):
    """Internal signal carrying a failure reason out of a calculator."""

    def __init__(self, reason: FailureReason, details: Dict[str, object]):
        super().__init__(reason.value)
        self.reason = reason
        self.details = details


# =============================================================================
# Per-kind calculators
# =============================================================================

def _percentage_amount(coupon: Coupon, cart: CartSnapshot) -> int:
    amount = percent_of(cart.subtotal, to_decimal(coupon.value, "value"))
    if coupon.max_discount is not None:
        amount = min(amount, coupon.max_discount)
    return amount


def _fixed_amount(coupon: Coupon, cart: CartSnapshot) -> int:
    return min(int(to_decimal(coupon.value, "value")), cart.subtotal)


def _free_shipping_amount(coupon: Coupon, cart: CartSnapshot) -> int:
    return cart.shipping_cost


def _buy_x_get_y_amount(coupon: Coupon, cart: CartSnapshot) -> int:
    # (unit_price, quantity) runs of eligible units, in cart order
    runs: List[Tuple[int, int]] = [
        (item.unit_price, item.quantity)
        for item in cart.line_items
        if coupon.applies_to(item)
    ]
    eligible_units = sum(quantity for _, quantity in runs)

    group_size = coupon.buy_quantity + coupon.get_quantity
    free_units = (eligible_units // group_size) * coupon.get_quantity
    if free_units == 0:
        raise _Ineligible(
            FailureReason.PRODUCT_NOT_ELIGIBLE,
            {"required_units": group_size, "eligible_units": eligible_units},
        )

    # Stable sort keeps the earliest line first among equal prices
    amount = 0
    remaining = free_units
    for unit_price, quantity in sorted(runs, key=lambda run: run[0]):
        taken = min(remaining, quantity)
        amount += unit_price * taken
        remaining -= taken
        if remaining == 0:
            break
    return amount


DiscountCalculator = Callable[[Coupon, CartSnapshot], int]

CALCULATORS: Dict[DiscountKind, DiscountCalculator] = {
    DiscountKind.PERCENTAGE: _percentage_amount,
    DiscountKind.FIXED: _fixed_amount,
    DiscountKind.FREE_SHIPPING: _free_shipping_amount,
    DiscountKind.BUY_X_GET_Y: _buy_x_get_y_amount,
}

_missing = set(DiscountKind) - set(CALCULATORS)
if _missing:
    raise RuntimeError(
        "No discount calculator registered for: "
        + ", ".join(sorted(kind.value for kind in _missing))
    )


# =============================================================================
# Input validation
# =============================================================================

def validate_cart(cart: CartSnapshot) -> None:
    """Reject carts whose amounts are not non-negative minor units.

    Raises:
        CheckoutValidationError: If any amount or quantity is malformed
    """
    validate_minor_amount(cart.subtotal, "subtotal")
    validate_minor_amount(cart.shipping_cost, "shipping_cost")
    for index, item in enumerate(cart.line_items):
        validate_minor_amount(item.unit_price, f"line_items[{index}].unit_price")
        validate_minor_amount(item.quantity, f"line_items[{index}].quantity", allow_zero=False)


def validate_coupon(coupon: Coupon) -> None:
    """Reject coupons whose numeric terms cannot be evaluated.

    Raises:
        CheckoutValidationError: If a value, limit or quantity is malformed
    """
    if not isinstance(coupon.code, str) or not coupon.code.strip():
        raise CheckoutValidationError("Coupon code is required", field="code")
    if not isinstance(coupon.kind, DiscountKind):
        raise CheckoutValidationError(
            f"Unknown discount kind: {coupon.kind!r}", field="kind"
        )
    value = to_decimal(coupon.value, "value")
    if value < 0:
        raise CheckoutValidationError("value must be >= 0", field="value")
    if coupon.kind is DiscountKind.PERCENTAGE and value > HUNDRED:
        raise CheckoutValidationError(
            "Percentage value must be between 0 and 100", field="value"
        )
    if coupon.kind is DiscountKind.FIXED and value != value.to_integral_value():
        raise CheckoutValidationError(
            "Fixed value must be a whole number of minor units", field="value"
        )
    if coupon.max_discount is not None:
        validate_minor_amount(coupon.max_discount, "max_discount")
    if coupon.usage_limit is not None:
        validate_minor_amount(coupon.usage_limit, "usage_limit")
    if coupon.usage_limit_per_customer is not None:
        validate_minor_amount(coupon.usage_limit_per_customer, "usage_limit_per_customer")
    validate_minor_amount(coupon.usage_count, "usage_count")
    validate_minor_amount(coupon.min_order_value, "min_order_value")
    validate_minor_amount(coupon.buy_quantity, "buy_quantity", allow_zero=False)
    validate_minor_amount(coupon.get_quantity, "get_quantity", allow_zero=False)


def validate_instant(now: datetime, coupon: Coupon) -> None:
    """Reject an evaluation instant that cannot be compared with the window.

    Raises:
        CheckoutValidationError: If ``now`` is not a datetime or mixes naive
            and timezone-aware values with the coupon window
    """
    if not isinstance(now, datetime):
        raise CheckoutValidationError(f"now must be a datetime, got {now!r}", field="now")
    for bound in (coupon.valid_from, coupon.valid_until):
        if bound is not None and (bound.tzinfo is None) != (now.tzinfo is None):
            raise CheckoutValidationError(
                "now and the coupon validity window must both be naive or both be timezone-aware",
                field="now",
            )


def validate_customer(customer: CustomerContext) -> None:
    """Reject a customer context that cannot be checked against restrictions.

    Raises:
        CheckoutValidationError: If the id is blank or a usage count is malformed
    """
    if not isinstance(customer.customer_id, str) or not customer.customer_id.strip():
        raise CheckoutValidationError("Customer id is required", field="customer_id")
    for code, count in customer.coupon_usage.items():
        validate_minor_amount(count, f"coupon_usage[{code}]")


# =============================================================================
# Evaluator
# =============================================================================

class DiscountRuleEvaluator:
    """
    Decides whether a coupon applies to a cart and how much it is worth.

    The evaluator is stateless apart from its settings: identical inputs
    always give an identical ``DiscountResult``.
    """

    def __init__(self, settings: Optional[CheckoutSettings] = None):
        self.settings = settings or get_settings()

    def check_preconditions(
        self,
        coupon: Coupon,
        cart: CartSnapshot,
        now: datetime,
        customer: Optional[CustomerContext] = None,
    ) -> Optional[DiscountResult]:
        """
        Run the non-monetary checks (window, usage, customer, minimum
        order, scope).

        Returns:
            A failed DiscountResult for the first violated rule, or None
            when every precondition holds
        """
        code = coupon.code

        if not coupon.is_active:
            return DiscountResult.failure(FailureReason.INACTIVE, code)

        if coupon.valid_from is not None and now < coupon.valid_from:
            return DiscountResult.failure(
                FailureReason.NOT_STARTED,
                code,
                {"valid_from": coupon.valid_from.isoformat()},
            )
        if coupon.valid_until is not None and now > coupon.valid_until:
            return DiscountResult.failure(
                FailureReason.EXPIRED,
                code,
                {"valid_until": coupon.valid_until.isoformat()},
            )

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return DiscountResult.failure(
                FailureReason.USAGE_LIMIT_EXCEEDED,
                code,
                {"usage_limit": coupon.usage_limit, "usage_count": coupon.usage_count},
            )

        customer_failure = self.check_customer(coupon, customer)
        if customer_failure is not None:
            return customer_failure

        if cart.subtotal < coupon.min_order_value:
            return DiscountResult.failure(
                FailureReason.MIN_ORDER_NOT_MET,
                code,
                {
                    "required_amount": coupon.min_order_value,
                    "current_amount": cart.subtotal,
                    "shortfall": coupon.min_order_value - cart.subtotal,
                },
            )

        if coupon.is_scoped and not any(coupon.applies_to(item) for item in cart.line_items):
            return DiscountResult.failure(FailureReason.PRODUCT_NOT_ELIGIBLE, code)

        return None

    def check_customer(
        self,
        coupon: Coupon,
        customer: Optional[CustomerContext],
    ) -> Optional[DiscountResult]:
        """
        Check the coupon's customer restrictions.

        Without a customer, restrictions that need a known shopper
        (an eligible-customer list, first order only) fail; exclusions and
        per-customer limits cannot apply to an anonymous shopper.
        """
        code = coupon.code

        if customer is None:
            if coupon.eligible_customer_ids:
                return DiscountResult.failure(
                    FailureReason.CUSTOMER_NOT_ELIGIBLE, code, {"condition": "eligible_customers"}
                )
            if coupon.first_order_only:
                return DiscountResult.failure(
                    FailureReason.CUSTOMER_NOT_ELIGIBLE, code, {"condition": "first_order"}
                )
            return None

        if customer.customer_id in coupon.excluded_customer_ids:
            return DiscountResult.failure(
                FailureReason.CUSTOMER_NOT_ELIGIBLE, code, {"condition": "excluded_customer"}
            )
        if coupon.eligible_customer_ids and customer.customer_id not in coupon.eligible_customer_ids:
            return DiscountResult.failure(
                FailureReason.CUSTOMER_NOT_ELIGIBLE, code, {"condition": "eligible_customers"}
            )

        if coupon.usage_limit_per_customer is not None:
            used = customer.usage_of(code)
            if used >= coupon.usage_limit_per_customer:
                return DiscountResult.failure(
                    FailureReason.CUSTOMER_USAGE_LIMIT_EXCEEDED,
                    code,
                    {"usage_limit_per_customer": coupon.usage_limit_per_customer, "customer_usage": used},
                )

        if coupon.first_order_only and not customer.is_first_order:
            return DiscountResult.failure(
                FailureReason.CUSTOMER_NOT_ELIGIBLE, code, {"condition": "first_order"}
            )

        return None

    def check_stacking(
        self,
        coupon: Coupon,
        already_applied: Optional[Coupon],
    ) -> Optional[DiscountResult]:
        """Check the coupon against one already applied to the same order."""
        if already_applied is None:
            return None
        if already_applied.normalized_code == coupon.normalized_code:
            return DiscountResult.failure(FailureReason.ALREADY_APPLIED, coupon.code)
        if not (coupon.stackable and already_applied.stackable):
            return DiscountResult.failure(
                FailureReason.NOT_STACKABLE,
                coupon.code,
                {"applied_code": already_applied.code},
            )
        return None

    def compute_amount(self, coupon: Coupon, cart: CartSnapshot) -> Tuple[int, Optional[DiscountResult]]:
        """
        Compute the discount amount for a coupon whose preconditions hold.

        Returns:
            (amount, failure) where failure is set when the kind's own
            requirements are not met (e.g. too few units for buy_x_get_y)
        """
        calculator = CALCULATORS[coupon.kind]
        try:
            amount = calculator(coupon, cart)
        except _Ineligible as exc:
            return 0, DiscountResult.failure(exc.reason, coupon.code, exc.details)
        # Never more than what is owed
        return max(0, min(amount, cart.subtotal)), None

    def evaluate(
        self,
        coupon: Coupon,
        cart: CartSnapshot,
        now: datetime,
        already_applied: Optional[Coupon] = None,
        customer: Optional[CustomerContext] = None,
    ) -> DiscountResult:
        """
        Evaluate a coupon against a cart at ``now``.

        Args:
            coupon: Coupon to evaluate
            cart: Cart snapshot
            now: Evaluation instant supplied by the caller
            already_applied: Coupon already applied to this order, if any
            customer: Shopper context for customer-restricted coupons

        Returns:
            DiscountResult with the amount, or the reason it does not apply

        Raises:
            CheckoutValidationError: If the coupon, cart or customer is malformed
        """
        validate_coupon(coupon)
        validate_cart(cart)
        validate_instant(now, coupon)
        if customer is not None:
            validate_customer(customer)

        failure = self.check_preconditions(coupon, cart, now, customer)
        if failure is None:
            failure = self.check_stacking(coupon, already_applied)
        if failure is None:
            amount, failure = self.compute_amount(coupon, cart)

        if failure is not None:
            logger.debug(
                "Coupon rejected",
                extra={"coupon_code": coupon.code, "reason": failure.reason.value},
            )
            return failure

        details: Dict[str, object] = {"kind": coupon.kind.value}
        if coupon.remaining_uses is not None:
            details["remaining_uses"] = coupon.remaining_uses

        result = DiscountResult.success(
            coupon_code=coupon.code,
            amount=amount,
            savings_percentage=savings_percentage(amount, cart.subtotal),
            details=details,
            warnings=self._warnings(coupon, now),
        )
        logger.debug(
            "Coupon applied",
            extra={"coupon_code": coupon.code, "amount": amount},
        )
        return result

    def _warnings(self, coupon: Coupon, now: datetime) -> Tuple[str, ...]:
        warnings: List[str] = []

        if coupon.valid_until is not None:
            remaining = coupon.valid_until - now
            if remaining <= timedelta(days=self.settings.expiry_warning_days):
                # Partial days count as a whole day
                days = remaining.days + (1 if remaining % timedelta(days=1) else 0)
                warnings.append(f"Coupon expires in {days} day{'' if days == 1 else 's'}")

        remaining_uses = coupon.remaining_uses
        if remaining_uses is not None and remaining_uses <= self.settings.low_remaining_uses_threshold:
            warnings.append(
                f"Only {remaining_uses} use{'' if remaining_uses == 1 else 's'} remaining"
            )

        return tuple(warnings)


def evaluate(
    coupon: Coupon,
    cart: CartSnapshot,
    now: datetime,
    already_applied: Optional[Coupon] = None,
    customer: Optional[CustomerContext] = None,
) -> DiscountResult:
    """Evaluate with a default-configured DiscountRuleEvaluator."""
    return DiscountRuleEvaluator().evaluate(coupon, cart, now, already_applied, customer)
