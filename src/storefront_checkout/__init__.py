"""
Storefront checkout computation core.

Pure, synchronous money logic used at checkout time:
- Coupon rule evaluation and ranking of eligible coupons
- Installment (EMI) amortization schedules
- Payment instrument validation and masking

All monetary values are integers of minor currency units. The current
time is always supplied by the caller.
"""

from storefront_checkout.models import (
    AmortizationPeriod,
    AmortizationSchedule,
    CardBrand,
    CartSnapshot,
    Coupon,
    CustomerContext,
    DiscountKind,
    DiscountResult,
    EMIOption,
    FailureReason,
    InstrumentType,
    LineItem,
    PaymentInstrumentDraft,
    StoredInstrument,
    ValidationResult,
)

# Discounts
from storefront_checkout.discounts import (
    DiscountRuleEvaluator,
    evaluate,
)

# Amortization
from storefront_checkout.amortization import (
    AmortizationCalculator,
    EMIQuote,
    calculate_emi,
    generate_schedule,
    is_eligible,
)

# Instruments
from storefront_checkout.instruments import (
    InstrumentValidation,
    PaymentInstrumentValidator,
    detect_brand,
    mask_account_number,
    mask_card_number,
    validate_account_number,
    validate_bank_routing_code,
    validate_card_number,
    validate_cardholder_name,
    validate_cvv,
    validate_expiry,
    validate_instrument,
    validate_virtual_payment_address,
)

# Catalog
from storefront_checkout.catalog import (
    CouponCatalog,
    CouponCatalogFilter,
    RankedCoupons,
    filter_eligible,
)

# Payload schemas
from storefront_checkout.schemas import (
    CartSnapshotRecord,
    CouponRecord,
    EMIOptionRecord,
    LineItemRecord,
)

from storefront_checkout.config import CheckoutSettings, get_settings
from storefront_checkout.exceptions import (
    CatalogError,
    CheckoutCoreError,
    CheckoutValidationError,
    ComputationError,
)
from storefront_checkout.logging_config import setup_logging

__all__ = [
    # Models
    "AmortizationPeriod",
    "AmortizationSchedule",
    "CardBrand",
    "CartSnapshot",
    "Coupon",
    "CustomerContext",
    "DiscountKind",
    "DiscountResult",
    "EMIOption",
    "FailureReason",
    "InstrumentType",
    "LineItem",
    "PaymentInstrumentDraft",
    "StoredInstrument",
    "ValidationResult",
    # Discounts
    "DiscountRuleEvaluator",
    "evaluate",
    # Amortization
    "AmortizationCalculator",
    "EMIQuote",
    "calculate_emi",
    "generate_schedule",
    "is_eligible",
    # Instruments
    "InstrumentValidation",
    "PaymentInstrumentValidator",
    "detect_brand",
    "mask_account_number",
    "mask_card_number",
    "validate_account_number",
    "validate_bank_routing_code",
    "validate_card_number",
    "validate_cardholder_name",
    "validate_cvv",
    "validate_expiry",
    "validate_instrument",
    "validate_virtual_payment_address",
    # Catalog
    "CouponCatalog",
    "CouponCatalogFilter",
    "RankedCoupons",
    "filter_eligible",
    # Schemas
    "CartSnapshotRecord",
    "CouponRecord",
    "EMIOptionRecord",
    "LineItemRecord",
    # Config, errors, logging
    "CheckoutSettings",
    "get_settings",
    "CatalogError",
    "CheckoutCoreError",
    "CheckoutValidationError",
    "ComputationError",
    "setup_logging",
]

__version__ = "0.1.0"
