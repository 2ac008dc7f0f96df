"""Integer minor-unit arithmetic.

Every monetary amount in this package is an ``int`` of minor currency units
(paise, cents). Fractional intermediates are carried as ``Decimal`` and
rounded half-up back to whole units.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .exceptions import CheckoutValidationError

HUNDRED = Decimal("100")
_UNIT = Decimal("1")
_CENTI = Decimal("0.01")


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Convert a numeric input to a finite Decimal.

    Raises:
        CheckoutValidationError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise CheckoutValidationError(f"{field_name} must be numeric", field=field_name)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise CheckoutValidationError(
                f"{field_name} must be numeric, got {value!r}", field=field_name
            ) from None
    if not result.is_finite():
        raise CheckoutValidationError(f"{field_name} must be finite", field=field_name)
    return result


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest whole minor unit, halves away from zero."""
    return int(value.quantize(_UNIT, rounding=ROUND_HALF_UP))


def percent_of(amount_minor: int, percent: Decimal) -> int:
    """``amount * percent / 100`` rounded half-up to whole minor units."""
    return round_half_up(Decimal(amount_minor) * percent / HUNDRED)


def savings_percentage(amount_minor: int, subtotal_minor: int) -> Decimal:
    """Share of the subtotal saved, as a percentage with two decimal places."""
    if subtotal_minor <= 0:
        return Decimal("0.00")
    ratio = Decimal(amount_minor) * HUNDRED / Decimal(subtotal_minor)
    return ratio.quantize(_CENTI, rounding=ROUND_HALF_UP)


def validate_minor_amount(
    value: Any,
    field_name: str = "amount",
    allow_zero: bool = True,
) -> int:
    """Validate a non-negative integer amount of minor units.

    Args:
        value: The amount to validate
        field_name: Name of the field for error messages
        allow_zero: Whether zero is acceptable

    Returns:
        The validated amount

    Raises:
        CheckoutValidationError: If the value is not a non-negative integer
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise CheckoutValidationError(
            f"{field_name} must be an integer number of minor units, got {value!r}",
            field=field_name,
        )
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise CheckoutValidationError(
            f"{field_name} must be {bound}, got {value}",
            field=field_name,
        )
    return value
