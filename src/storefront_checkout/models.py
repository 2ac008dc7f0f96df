"""Checkout computation data models.

All monetary fields are integers of minor currency units.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from .constants import CouponDefaults


class DiscountKind(str, Enum):
    """Closed set of discount kinds a coupon can grant."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"


class FailureReason(str, Enum):
    """Why a coupon was not applied."""
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED"
    MIN_ORDER_NOT_MET = "MIN_ORDER_NOT_MET"
    PRODUCT_NOT_ELIGIBLE = "PRODUCT_NOT_ELIGIBLE"
    NOT_STACKABLE = "NOT_STACKABLE"
    ALREADY_APPLIED = "ALREADY_APPLIED"
    CUSTOMER_NOT_ELIGIBLE = "CUSTOMER_NOT_ELIGIBLE"
    CUSTOMER_USAGE_LIMIT_EXCEEDED = "CUSTOMER_USAGE_LIMIT_EXCEEDED"


class InstrumentType(str, Enum):
    """Payment instrument families accepted at checkout."""
    CARD = "card"
    NETBANKING = "netbanking"
    VIRTUAL_PAYMENT_ADDRESS = "upi"


class CardBrand(str, Enum):
    """Card networks recognised by leading-digit prefix."""
    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    DISCOVER = "discover"
    DINERS = "diners"
    JCB = "jcb"
    MAESTRO = "maestro"
    RUPAY = "rupay"
    UNKNOWN = "unknown"


def normalize_code(code: str) -> str:
    """Canonical form of a coupon code used for comparisons."""
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class LineItem:
    """A single product line in a cart snapshot."""

    product_id: str
    category_id: Optional[str]
    unit_price: int  # Minor units
    quantity: int

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """Immutable view of a cart, rebuilt by the caller on every cart change."""

    subtotal: int
    shipping_cost: int = 0
    line_items: Tuple[LineItem, ...] = ()
    currency: str = "INR"

    def __post_init__(self) -> None:
        if not isinstance(self.line_items, tuple):
            object.__setattr__(self, "line_items", tuple(self.line_items))

    @classmethod
    def from_line_items(
        cls,
        line_items: Union[Tuple[LineItem, ...], List[LineItem]],
        shipping_cost: int = 0,
        currency: str = "INR",
    ) -> "CartSnapshot":
        """Build a snapshot whose subtotal is the sum of its line totals."""
        items = tuple(line_items)
        return cls(
            subtotal=sum(item.total for item in items),
            shipping_cost=shipping_cost,
            line_items=items,
            currency=currency,
        )


@dataclass(frozen=True, slots=True)
class CustomerContext:
    """What the checkout knows about the shopper for one evaluation.

    ``coupon_usage`` maps normalized coupon codes to how often this
    customer has already redeemed them, as recorded by order placement.
    """

    customer_id: str
    is_first_order: bool = False
    coupon_usage: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "coupon_usage",
            {normalize_code(code): count for code, count in self.coupon_usage.items()},
        )

    def usage_of(self, code: str) -> int:
        return self.coupon_usage.get(normalize_code(code), 0)


@dataclass(frozen=True, slots=True)
class Coupon:
    """A coupon record as published by the catalog system of record.

    ``value`` is a percentage (0-100) for ``PERCENTAGE`` and an amount of
    minor units for ``FIXED``; the other kinds ignore it.
    """

    code: str
    kind: DiscountKind
    value: Decimal = Decimal("0")
    max_discount: Optional[int] = None

    # Validity window, both bounds inclusive; None means unbounded
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    usage_limit: Optional[int] = None
    usage_count: int = 0
    min_order_value: int = 0
    stackable: bool = False
    is_active: bool = True

    # Customer restrictions; empty eligible set means every customer
    usage_limit_per_customer: Optional[int] = None
    eligible_customer_ids: FrozenSet[str] = frozenset()
    excluded_customer_ids: FrozenSet[str] = frozenset()
    first_order_only: bool = False

    # Scoping
    applicable_product_ids: FrozenSet[str] = frozenset()
    applicable_category_ids: FrozenSet[str] = frozenset()
    exclude_product_ids: FrozenSet[str] = frozenset()
    exclude_category_ids: FrozenSet[str] = frozenset()

    # buy_x_get_y parameters
    buy_quantity: int = CouponDefaults.BUY_QUANTITY
    get_quantity: int = CouponDefaults.GET_QUANTITY

    description: str = ""
    terms: Tuple[str, ...] = ()

    @property
    def normalized_code(self) -> str:
        return normalize_code(self.code)

    @property
    def is_scoped(self) -> bool:
        """Whether the coupon restricts which line items it applies to."""
        return bool(
            self.applicable_product_ids
            or self.applicable_category_ids
            or self.exclude_product_ids
            or self.exclude_category_ids
        )

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)

    def applies_to(self, item: LineItem) -> bool:
        """Check whether a line item falls inside this coupon's scope."""
        if item.product_id in self.exclude_product_ids:
            return False
        if item.category_id is not None and item.category_id in self.exclude_category_ids:
            return False
        if not self.applicable_product_ids and not self.applicable_category_ids:
            return True
        return item.product_id in self.applicable_product_ids or (
            item.category_id is not None and item.category_id in self.applicable_category_ids
        )


@dataclass(frozen=True, slots=True)
class DiscountResult:
    """Outcome of evaluating one coupon against one cart."""

    applied: bool
    amount: int = 0
    reason: Optional[FailureReason] = None
    savings_percentage: Decimal = Decimal("0.00")
    coupon_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @classmethod
    def success(
        cls,
        coupon_code: str,
        amount: int,
        savings_percentage: Decimal,
        details: Optional[Dict[str, Any]] = None,
        warnings: Tuple[str, ...] = (),
    ) -> "DiscountResult":
        return cls(
            applied=True,
            amount=amount,
            savings_percentage=savings_percentage,
            coupon_code=coupon_code,
            details=details or {},
            warnings=warnings,
        )

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        coupon_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "DiscountResult":
        return cls(
            applied=False,
            reason=reason,
            coupon_code=coupon_code,
            details=details or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "applied": self.applied,
            "amount": self.amount,
            "reason": self.reason.value if self.reason else None,
            "savings_percentage": str(self.savings_percentage),
            "coupon_code": self.coupon_code,
            "details": self.details,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True, slots=True)
class EMIOption:
    """An installment plan offered by a lender for eligible order amounts."""

    option_id: str
    provider: str
    duration: int  # Number of monthly periods
    annual_rate: Decimal  # Percent, e.g. Decimal("13.5")
    processing_fee: int = 0
    minimum_amount: int = 0
    maximum_amount: Optional[int] = None
    is_available: bool = True

    @property
    def is_no_cost(self) -> bool:
        return self.annual_rate == 0


@dataclass(frozen=True, slots=True)
class AmortizationPeriod:
    """One installment of a schedule."""

    number: int
    payment: int
    principal: int
    interest: int
    balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "payment": self.payment,
            "principal": self.principal,
            "interest": self.interest,
            "balance": self.balance,
        }


@dataclass(frozen=True, slots=True)
class AmortizationSchedule:
    """Full reducing-balance repayment plan for a principal."""

    principal: int
    annual_rate: Decimal
    periodic_payment: int
    periods: Tuple[AmortizationPeriod, ...]
    total_interest: int
    processing_fee: int
    total_amount: int

    @property
    def final_balance(self) -> int:
        return self.periods[-1].balance if self.periods else self.principal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "principal": self.principal,
            "annual_rate": str(self.annual_rate),
            "periodic_payment": self.periodic_payment,
            "periods": [p.to_dict() for p in self.periods],
            "total_interest": self.total_interest,
            "processing_fee": self.processing_fee,
            "total_amount": self.total_amount,
        }


@dataclass(slots=True)
class PaymentInstrumentDraft:
    """Raw instrument fields held only for one validation/submission attempt.

    Raw identifiers are excluded from ``repr`` so a draft can be logged
    without leaking them.
    """

    instrument_type: InstrumentType
    card_number: Optional[str] = field(default=None, repr=False)
    expiry_month: Any = None
    expiry_year: Any = None
    cvv: Optional[str] = field(default=None, repr=False)
    cardholder_name: Optional[str] = None
    account_number: Optional[str] = field(default=None, repr=False)
    routing_code: Optional[str] = None
    virtual_payment_address: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StoredInstrument:
    """The only instrument representation allowed to outlive validation."""

    instrument_type: InstrumentType
    display: str
    last4: Optional[str] = None
    brand: Optional[CardBrand] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instrument_type": self.instrument_type.value,
            "display": self.display,
            "last4": self.last4,
            "brand": self.brand.value if self.brand else None,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Result of a single-field validation.

    Attributes:
        is_valid: Whether the validation passed
        error: Reason code if validation failed
        field: The field name that was validated
    """

    is_valid: bool
    error: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def success(cls, field: Optional[str] = None) -> "ValidationResult":
        return cls(is_valid=True, field=field)

    @classmethod
    def failure(cls, error: str, field: Optional[str] = None) -> "ValidationResult":
        return cls(is_valid=False, error=error, field=field)

    def __bool__(self) -> bool:
        return self.is_valid
