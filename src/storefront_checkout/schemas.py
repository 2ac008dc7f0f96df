"""Catalog payload schemas.

Coupons, EMI options and carts arrive from the backend as JSON objects
with camelCase keys. These pydantic models validate them and convert them
into the immutable domain dataclasses used by the evaluators.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import get_settings
from .exceptions import CheckoutValidationError
from .models import CartSnapshot, Coupon, DiscountKind, EMIOption, LineItem

# Kind spellings used by older catalog payloads
_KIND_ALIASES = {
    "flat": DiscountKind.FIXED.value,
    "fixed_amount": DiscountKind.FIXED.value,
    "buy_one_get_one": DiscountKind.BUY_X_GET_Y.value,
    "bogo": DiscountKind.BUY_X_GET_Y.value,
}


class _CatalogRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def parse(cls, payload: Mapping[str, Any]):
        """Validate a raw payload, raising the package's validation error."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or None
            raise CheckoutValidationError(
                f"Invalid {cls.__name__}: {first['msg']}",
                field=location,
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from None


class CouponRecord(_CatalogRecord):
    """A coupon as served by the catalog backend."""

    code: str = Field(min_length=1)
    kind: DiscountKind = Field(validation_alias=AliasChoices("kind", "type", "discountType"))
    value: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        validation_alias=AliasChoices("value", "discountValue"),
    )
    max_discount: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("max_discount", "maxDiscount")
    )
    valid_from: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("valid_from", "validFrom", "startsAt")
    )
    valid_until: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("valid_until", "validUntil", "expiresAt")
    )
    usage_limit: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("usage_limit", "usageLimit")
    )
    usage_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("usage_count", "usageCount", "usedCount", "currentUsageCount"),
    )
    min_order_value: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("min_order_value", "minOrderValue", "minAmount", "minimumOrderValue"),
    )
    stackable: bool = False
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))
    usage_limit_per_customer: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("usage_limit_per_customer", "usageLimitPerUser"),
    )
    eligible_customers: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("eligible_customers", "eligibleUsers")
    )
    excluded_customers: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("excluded_customers", "excludedUsers")
    )
    first_order_only: bool = Field(
        default=False, validation_alias=AliasChoices("first_order_only", "firstOrderOnly", "isFirstOrderOnly")
    )
    applicable_products: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("applicable_products", "applicableProducts")
    )
    applicable_categories: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("applicable_categories", "applicableCategories")
    )
    exclude_products: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("exclude_products", "excludeProducts")
    )
    exclude_categories: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("exclude_categories", "excludeCategories")
    )
    buy_quantity: int = Field(default=1, ge=1, validation_alias=AliasChoices("buy_quantity", "buyQuantity"))
    get_quantity: int = Field(default=1, ge=1, validation_alias=AliasChoices("get_quantity", "getQuantity"))
    description: str = ""
    terms: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("terms", "termsAndConditions")
    )

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return _KIND_ALIASES.get(v, v)
        return v

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code must not be blank")
        return v

    def to_domain(self) -> Coupon:
        return Coupon(
            code=self.code,
            kind=self.kind,
            value=self.value,
            max_discount=self.max_discount,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            usage_limit=self.usage_limit,
            usage_count=self.usage_count,
            min_order_value=self.min_order_value,
            stackable=self.stackable,
            is_active=self.is_active,
            usage_limit_per_customer=self.usage_limit_per_customer,
            eligible_customer_ids=frozenset(self.eligible_customers),
            excluded_customer_ids=frozenset(self.excluded_customers),
            first_order_only=self.first_order_only,
            applicable_product_ids=frozenset(self.applicable_products),
            applicable_category_ids=frozenset(self.applicable_categories),
            exclude_product_ids=frozenset(self.exclude_products),
            exclude_category_ids=frozenset(self.exclude_categories),
            buy_quantity=self.buy_quantity,
            get_quantity=self.get_quantity,
            description=self.description,
            terms=tuple(self.terms),
        )


class EMIOptionRecord(_CatalogRecord):
    """An EMI plan as served by the payments backend."""

    option_id: str = Field(validation_alias=AliasChoices("option_id", "optionId", "id"))
    provider: str = Field(validation_alias=AliasChoices("provider", "bank", "bankName"))
    duration: int = Field(gt=0, validation_alias=AliasChoices("duration", "tenure", "tenureMonths"))
    annual_rate: Decimal = Field(
        ge=0, validation_alias=AliasChoices("annual_rate", "annualRate", "interestRate")
    )
    processing_fee: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("processing_fee", "processingFee")
    )
    minimum_amount: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("minimum_amount", "minimumAmount", "minAmount")
    )
    maximum_amount: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("maximum_amount", "maximumAmount", "maxAmount")
    )
    is_available: bool = Field(
        default=True, validation_alias=AliasChoices("is_available", "isAvailable", "available")
    )

    def to_domain(self) -> EMIOption:
        return EMIOption(
            option_id=self.option_id,
            provider=self.provider,
            duration=self.duration,
            annual_rate=self.annual_rate,
            processing_fee=self.processing_fee,
            minimum_amount=self.minimum_amount,
            maximum_amount=self.maximum_amount,
            is_available=self.is_available,
        )


class LineItemRecord(_CatalogRecord):
    """One cart line as sent by the cart service."""

    product_id: str = Field(validation_alias=AliasChoices("product_id", "productId"))
    category_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("category_id", "categoryId")
    )
    unit_price: int = Field(ge=0, validation_alias=AliasChoices("unit_price", "unitPrice", "price"))
    quantity: int = Field(gt=0)

    def to_domain(self) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            category_id=self.category_id,
            unit_price=self.unit_price,
            quantity=self.quantity,
        )


class CartSnapshotRecord(_CatalogRecord):
    """A cart as sent by the cart service.

    When ``subtotal`` is omitted it is derived from the line items.
    """

    subtotal: Optional[int] = Field(default=None, ge=0)
    shipping_cost: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("shipping_cost", "shippingCost", "shipping")
    )
    items: List[LineItemRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("items", "line_items", "lineItems")
    )
    currency: str = Field(default_factory=lambda: get_settings().default_currency)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    def to_domain(self) -> CartSnapshot:
        line_items = tuple(item.to_domain() for item in self.items)
        if self.subtotal is None:
            return CartSnapshot.from_line_items(
                line_items, shipping_cost=self.shipping_cost, currency=self.currency
            )
        return CartSnapshot(
            subtotal=self.subtotal,
            shipping_cost=self.shipping_cost,
            line_items=line_items,
            currency=self.currency,
        )
