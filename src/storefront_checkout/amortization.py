"""
Installment (EMI) amortization.

Reducing-balance schedules computed in integer minor units. Per-period
interest is rounded half-up, and the last period repays whatever balance
is left, so the principal components always sum to the principal exactly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .constants import AmortizationRules
from .exceptions import CheckoutValidationError, ComputationError
from .models import AmortizationPeriod, AmortizationSchedule, EMIOption
from .money import HUNDRED, round_half_up, to_decimal, validate_minor_amount

logger = logging.getLogger(__name__)

_MONTHS = Decimal(AmortizationRules.MONTHS_PER_YEAR)


def _validate_terms(principal: Any, annual_rate_percent: Any, periods: Any) -> Decimal:
    validate_minor_amount(principal, "principal")
    if isinstance(periods, bool) or not isinstance(periods, int) or periods <= 0:
        raise CheckoutValidationError(
            f"periods must be a positive integer, got {periods!r}", field="periods"
        )
    if periods > AmortizationRules.MAX_PERIODS:
        raise CheckoutValidationError(
            f"periods must be <= {AmortizationRules.MAX_PERIODS}", field="periods"
        )
    rate = to_decimal(annual_rate_percent, "annual_rate_percent")
    if rate < 0:
        raise CheckoutValidationError(
            "annual_rate_percent must be >= 0", field="annual_rate_percent"
        )
    return rate


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage rate to a monthly fraction."""
    return annual_rate_percent / _MONTHS / HUNDRED


def calculate_emi(principal: int, annual_rate_percent: Any, periods: int) -> int:
    """
    Compute the periodic installment for a principal.

    Args:
        principal: Amount financed, in minor units
        annual_rate_percent: Annual interest rate in percent (>= 0)
        periods: Number of monthly installments (> 0)

    Returns:
        Periodic payment in minor units, rounded half-up

    Raises:
        CheckoutValidationError: If any term is malformed
        ComputationError: If the annuity denominator evaluates to zero
    """
    rate = _validate_terms(principal, annual_rate_percent, periods)

    if rate == 0:
        return round_half_up(Decimal(principal) / periods)

    r = monthly_rate(rate)
    growth = (1 + r) ** periods
    denominator = growth - 1
    if denominator == 0:
        raise ComputationError(
            "Annuity denominator is zero",
            details={"annual_rate_percent": str(rate), "periods": periods},
        )
    return round_half_up(Decimal(principal) * r * growth / denominator)


def generate_schedule(
    principal: int,
    annual_rate_percent: Any,
    periods: int,
    processing_fee: int = 0,
) -> AmortizationSchedule:
    """
    Build the full repayment schedule.

    The final period's principal component is the balance left before it,
    which absorbs the rounding drift of earlier periods.

    Raises:
        CheckoutValidationError: If any term or the fee is malformed
    """
    payment = calculate_emi(principal, annual_rate_percent, periods)
    validate_minor_amount(processing_fee, "processing_fee")
    rate = to_decimal(annual_rate_percent, "annual_rate_percent")
    r = monthly_rate(rate)

    balance = principal
    rows: List[AmortizationPeriod] = []
    for number in range(1, periods + 1):
        interest = round_half_up(Decimal(balance) * r)
        if number == periods:
            principal_part = balance
        else:
            principal_part = min(max(payment - interest, 0), balance)
        balance -= principal_part
        rows.append(
            AmortizationPeriod(
                number=number,
                payment=principal_part + interest,
                principal=principal_part,
                interest=interest,
                balance=balance,
            )
        )

    total_interest = sum(row.interest for row in rows)
    return AmortizationSchedule(
        principal=principal,
        annual_rate=rate,
        periodic_payment=payment,
        periods=tuple(rows),
        total_interest=total_interest,
        processing_fee=processing_fee,
        total_amount=principal + total_interest + processing_fee,
    )


def is_eligible(option: EMIOption, order_amount: int) -> bool:
    """Whether an EMI option can finance ``order_amount``."""
    validate_minor_amount(order_amount, "order_amount")
    if not option.is_available:
        return False
    if order_amount < option.minimum_amount:
        return False
    if option.maximum_amount is not None and order_amount > option.maximum_amount:
        return False
    return True


@dataclass(frozen=True, slots=True)
class EMIQuote:
    """An EMI option priced for a specific order amount."""

    option: EMIOption
    schedule: AmortizationSchedule

    @property
    def monthly_payment(self) -> int:
        return self.schedule.periodic_payment

    @property
    def total_amount(self) -> int:
        return self.schedule.total_amount

    @property
    def cost_of_credit(self) -> int:
        """Interest plus fees over the amount financed."""
        return self.schedule.total_amount - self.schedule.principal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "option_id": self.option.option_id,
            "provider": self.option.provider,
            "duration": self.option.duration,
            "annual_rate": str(self.option.annual_rate),
            "no_cost": self.option.is_no_cost,
            "monthly_payment": self.monthly_payment,
            "cost_of_credit": self.cost_of_credit,
            "schedule": self.schedule.to_dict(),
        }


class AmortizationCalculator:
    """
    Prices EMI options for an order.

    Features:
    - Eligibility filtering by availability and amount band
    - Per-option schedules with processing fees
    - Comparison ordered by total amount payable
    """

    def calculate_emi(self, principal: int, annual_rate_percent: Any, periods: int) -> int:
        return calculate_emi(principal, annual_rate_percent, periods)

    def generate_schedule(
        self,
        principal: int,
        annual_rate_percent: Any,
        periods: int,
        processing_fee: int = 0,
    ) -> AmortizationSchedule:
        return generate_schedule(principal, annual_rate_percent, periods, processing_fee)

    def is_eligible(self, option: EMIOption, order_amount: int) -> bool:
        return is_eligible(option, order_amount)

    def eligible_options(self, options: Iterable[EMIOption], order_amount: int) -> List[EMIOption]:
        """Options that can finance the order, in their original order."""
        return [option for option in options if is_eligible(option, order_amount)]

    def quote(self, option: EMIOption, order_amount: int) -> Optional[EMIQuote]:
        """Price one option, or return None if it cannot finance the order."""
        if not is_eligible(option, order_amount):
            return None
        schedule = generate_schedule(
            order_amount,
            option.annual_rate,
            option.duration,
            option.processing_fee,
        )
        return EMIQuote(option=option, schedule=schedule)

    def compare_options(self, options: Iterable[EMIOption], order_amount: int) -> List[EMIQuote]:
        """
        Quote every eligible option, cheapest total first.

        Ties are broken by shorter duration, then option id.
        """
        quotes = [
            quote
            for quote in (self.quote(option, order_amount) for option in options)
            if quote is not None
        ]
        quotes.sort(key=lambda q: (q.total_amount, q.option.duration, q.option.option_id))
        logger.debug(
            "Quoted EMI options",
            extra={"order_amount": order_amount, "eligible": len(quotes)},
        )
        return quotes
