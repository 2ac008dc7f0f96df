"""
Payment instrument validation.

Structural checks for the fields a customer types at checkout. Every
validator is a total function: malformed input of any type is classified
invalid and never raises.

Usage:
    from storefront_checkout.instruments import (
        validate_card_number,
        detect_brand,
        validate_instrument,
    )

    validate_card_number("4111 1111 1111 1111")  # True
    detect_brand("4111111111111111")              # CardBrand.VISA
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Pattern, Tuple

from .constants import CardRules
from .models import (
    CardBrand,
    InstrumentType,
    PaymentInstrumentDraft,
    StoredInstrument,
    ValidationResult,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Regex Patterns
# =============================================================================

# First match wins, so narrower prefixes precede the ones they overlap
BRAND_PATTERNS: Tuple[Tuple[CardBrand, Pattern[str]], ...] = (
    (CardBrand.VISA, re.compile(r"^4")),
    (CardBrand.MASTERCARD, re.compile(r"^5[1-5]")),
    (CardBrand.AMEX, re.compile(r"^3[47]")),
    (CardBrand.DISCOVER, re.compile(r"^6(?:011|5)")),
    (CardBrand.DINERS, re.compile(r"^3(?:0[0-5]|[68])")),
    (CardBrand.JCB, re.compile(r"^35")),
    (CardBrand.MAESTRO, re.compile(r"^(?:5018|5020|5038|6304|6759|6761|6763)")),
    (CardBrand.RUPAY, re.compile(r"^(?:508|60|81|82|6)")),
)

# 4 letters (bank), literal 0, 6 alphanumerics (branch)
BANK_ROUTING_CODE_PATTERN: Pattern[str] = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

VIRTUAL_PAYMENT_ADDRESS_PATTERN: Pattern[str] = re.compile(r"^[\w.-]+@[\w.-]+$", re.ASCII)

CARDHOLDER_NAME_PATTERN: Pattern[str] = re.compile(r"^[A-Za-z][A-Za-z '\-]*$")

_NON_DIGITS: Pattern[str] = re.compile(r"\D", re.ASCII)
_DIGITS_ONLY: Pattern[str] = re.compile(r"^\d+$", re.ASCII)


def _digits(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _NON_DIGITS.sub("", value)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _DIGITS_ONLY.fullmatch(value.strip()):
        return int(value.strip())
    return None


# =============================================================================
# Card validators
# =============================================================================

def luhn_checksum_valid(digits: str) -> bool:
    """Luhn check over a string of digits.

    Starting from the rightmost digit, every second digit is doubled and
    reduced by 9 when it exceeds 9; the total must be a multiple of 10.
    """
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card_number(number: Any) -> bool:
    """Check length (13-19 digits after stripping separators) and Luhn checksum."""
    digits = _digits(number)
    if not CardRules.MIN_LENGTH <= len(digits) <= CardRules.MAX_LENGTH:
        return False
    return luhn_checksum_valid(digits)


def detect_brand(number: Any) -> CardBrand:
    """Identify the card network from the leading digits."""
    digits = _digits(number)
    if not digits:
        return CardBrand.UNKNOWN
    for brand, pattern in BRAND_PATTERNS:
        if pattern.match(digits):
            return brand
    return CardBrand.UNKNOWN


def validate_expiry(month: Any, year: Any, now: date | datetime) -> bool:
    """
    Check that a card has not expired as of ``now``.

    ``year`` may be four digits or two (interpreted as 20YY). A card
    expiring in the current month is still valid.
    """
    month_num = _as_int(month)
    year_num = _as_int(year)
    if month_num is None or year_num is None:
        return False
    if not 1 <= month_num <= 12:
        return False
    if year_num < 100:
        year_num += 2000
    return (year_num, month_num) >= (now.year, now.month)


def validate_cvv(code: Any, brand: CardBrand | str | None = None) -> bool:
    """Digits only; four for American Express, three for everything else."""
    if not isinstance(code, str) or not _DIGITS_ONLY.fullmatch(code):
        return False
    expected = (
        CardRules.AMEX_CVV_LENGTH
        if brand in (CardBrand.AMEX, CardBrand.AMEX.value)
        else CardRules.DEFAULT_CVV_LENGTH
    )
    return len(code) == expected


def validate_cardholder_name(name: Any) -> bool:
    """Letters, spaces, hyphens and apostrophes; at least three characters."""
    if not isinstance(name, str):
        return False
    stripped = name.strip()
    if len(stripped) < CardRules.MIN_HOLDER_NAME_LENGTH:
        return False
    return bool(CARDHOLDER_NAME_PATTERN.match(stripped))


# =============================================================================
# Bank and virtual address validators
# =============================================================================

def validate_bank_routing_code(code: Any) -> bool:
    """Bank branch code: 4 letters, ``0``, then 6 letters or digits."""
    if not isinstance(code, str):
        return False
    return bool(BANK_ROUTING_CODE_PATTERN.match(code.strip().upper()))


def validate_account_number(number: Any) -> bool:
    """Bank account numbers are digits, optionally space separated."""
    if not isinstance(number, str):
        return False
    return bool(_DIGITS_ONLY.fullmatch(re.sub(r"\s", "", number)))


def validate_virtual_payment_address(address: Any) -> bool:
    """``local@handle`` where both parts are word, dot or hyphen characters."""
    if not isinstance(address, str):
        return False
    return bool(VIRTUAL_PAYMENT_ADDRESS_PATTERN.match(address.strip()))


# =============================================================================
# Masking
# =============================================================================

def mask_card_number(number: Any) -> str:
    """Render a card number as ``**** **** **** 1234``."""
    digits = _digits(number)
    return f"**** **** **** {digits[-CardRules.VISIBLE_DIGITS:]}"


def mask_account_number(number: Any) -> str:
    """Mask all but the last four characters of a bank account number."""
    if not isinstance(number, str):
        return ""
    cleaned = re.sub(r"\s", "", number)
    visible = cleaned[-CardRules.VISIBLE_DIGITS:]
    return "X" * (len(cleaned) - len(visible)) + visible


# =============================================================================
# Draft validation
# =============================================================================

@dataclass(frozen=True)
class InstrumentValidation:
    """Outcome of validating a whole instrument draft.

    Attributes:
        is_valid: Whether every field passed
        errors: Reason code per failing field
        brand: Detected card brand, for card drafts
    """

    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    brand: Optional[CardBrand] = None

    def field_result(self, name: str) -> ValidationResult:
        """Result for a single field of the draft."""
        if name in self.errors:
            return ValidationResult.failure(self.errors[name], field=name)
        return ValidationResult.success(field=name)


class PaymentInstrumentValidator:
    """
    Validates payment instrument drafts and reduces them to storable form.

    Features:
    - Card number, expiry, CVV and holder name checks
    - Bank routing code checks for netbanking
    - Virtual payment address checks
    - Masked representation that drops raw identifiers
    """

    def validate(self, draft: PaymentInstrumentDraft, now: date | datetime) -> InstrumentValidation:
        """Validate every field required by the draft's instrument type."""
        errors: Dict[str, str] = {}
        brand: Optional[CardBrand] = None

        if draft.instrument_type is InstrumentType.CARD:
            brand = detect_brand(draft.card_number)
            if not validate_card_number(draft.card_number):
                errors["card_number"] = "INVALID_CARD_NUMBER"
            if not validate_expiry(draft.expiry_month, draft.expiry_year, now):
                errors["expiry"] = "INVALID_OR_EXPIRED"
            if not validate_cvv(draft.cvv, brand):
                errors["cvv"] = "INVALID_CVV"
            if draft.cardholder_name is not None and not validate_cardholder_name(draft.cardholder_name):
                errors["cardholder_name"] = "INVALID_NAME"
        elif draft.instrument_type is InstrumentType.NETBANKING:
            if not validate_bank_routing_code(draft.routing_code):
                errors["routing_code"] = "INVALID_ROUTING_CODE"
            if draft.account_number is not None and not validate_account_number(draft.account_number):
                errors["account_number"] = "INVALID_ACCOUNT_NUMBER"
        elif draft.instrument_type is InstrumentType.VIRTUAL_PAYMENT_ADDRESS:
            if not validate_virtual_payment_address(draft.virtual_payment_address):
                errors["virtual_payment_address"] = "INVALID_ADDRESS"
        else:
            errors["instrument_type"] = "UNSUPPORTED_TYPE"

        result = InstrumentValidation(is_valid=not errors, errors=errors, brand=brand)
        logger.debug(
            "Validated payment instrument",
            extra={"instrument_type": str(draft.instrument_type), "failed_fields": sorted(errors)},
        )
        return result

    def to_stored(self, draft: PaymentInstrumentDraft) -> StoredInstrument:
        """Reduce a draft to the representation kept after submission."""
        if draft.instrument_type is InstrumentType.CARD:
            digits = _digits(draft.card_number)
            return StoredInstrument(
                instrument_type=draft.instrument_type,
                display=mask_card_number(digits),
                last4=digits[-CardRules.VISIBLE_DIGITS:] or None,
                brand=detect_brand(digits),
            )
        if draft.instrument_type is InstrumentType.NETBANKING:
            masked = mask_account_number(draft.account_number)
            return StoredInstrument(
                instrument_type=draft.instrument_type,
                display=masked or (draft.routing_code or "").strip().upper(),
                last4=masked[-CardRules.VISIBLE_DIGITS:] or None,
            )
        return StoredInstrument(
            instrument_type=draft.instrument_type,
            display=(draft.virtual_payment_address or "").strip(),
        )


def validate_instrument(draft: PaymentInstrumentDraft, now: date | datetime) -> InstrumentValidation:
    """Validate a draft with a default PaymentInstrumentValidator."""
    return PaymentInstrumentValidator().validate(draft, now)
