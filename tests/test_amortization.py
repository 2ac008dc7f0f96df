"""
Tests for storefront_checkout.amortization.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from storefront_checkout.amortization import (
    AmortizationCalculator,
    calculate_emi,
    generate_schedule,
    is_eligible,
)
from storefront_checkout.exceptions import CheckoutValidationError
from storefront_checkout.models import EMIOption


@pytest.fixture
def calculator():
    return AmortizationCalculator()


class TestCalculateEMI:
    """Tests for the periodic installment formula."""

    def test_zero_rate_divides_principal(self):
        """12000 over 12 interest-free months is 1000 a month."""
        assert calculate_emi(12000, 0, 12) == 1000

    def test_zero_rate_rounds_half_up(self):
        """1000 over 6 months is 166.67, rounded to 167."""
        assert calculate_emi(1000, Decimal("0"), 6) == 167

    def test_reducing_balance_formula(self):
        """10000 at 12% over 6 months is 1725.48, rounded to 1725."""
        assert calculate_emi(10000, 12, 6) == 1725

    def test_accepts_decimal_and_string_rates(self):
        """Rates may be given as Decimal or numeric strings."""
        assert calculate_emi(10000, Decimal("12"), 6) == calculate_emi(10000, "12", 6) == 1725

    def test_single_period(self):
        """One period repays principal plus one month of interest."""
        assert calculate_emi(10000, 12, 1) == 10100

    def test_zero_principal(self):
        """Nothing financed means nothing to repay."""
        assert calculate_emi(0, 12, 6) == 0

    @pytest.mark.parametrize("periods", [0, -3, True, 6.0, "6"])
    def test_invalid_periods(self, periods):
        """Periods must be a positive integer."""
        with pytest.raises(CheckoutValidationError) as exc_info:
            calculate_emi(10000, 12, periods)

        assert exc_info.value.field == "periods"

    def test_too_many_periods(self):
        """Schedules are bounded."""
        with pytest.raises(CheckoutValidationError, match="periods"):
            calculate_emi(10000, 12, 601)

    def test_negative_rate(self):
        """Negative rates are rejected."""
        with pytest.raises(CheckoutValidationError) as exc_info:
            calculate_emi(10000, -1, 6)

        assert exc_info.value.field == "annual_rate_percent"

    def test_non_numeric_rate(self):
        """Unparseable rates are rejected."""
        with pytest.raises(CheckoutValidationError):
            calculate_emi(10000, "twelve", 6)

    @pytest.mark.parametrize("principal", [-1, 100.5, None])
    def test_invalid_principal(self, principal):
        """Principal must be non-negative minor units."""
        with pytest.raises(CheckoutValidationError) as exc_info:
            calculate_emi(principal, 12, 6)

        assert exc_info.value.error_code == "VALIDATION_ERROR"


class TestGenerateSchedule:
    """Tests for full repayment schedules."""

    def test_zero_rate_schedule(self):
        """Interest-free schedule ends at exactly zero."""
        schedule = generate_schedule(12000, 0, 12)

        assert schedule.periodic_payment == 1000
        assert len(schedule.periods) == 12
        assert schedule.periods[-1].balance == 0
        assert schedule.total_interest == 0
        assert all(row.interest == 0 for row in schedule.periods)

    def test_reducing_balance_schedule(self):
        """10000 at 12% over 6 months, period by period."""
        schedule = generate_schedule(10000, 12, 6)

        assert [row.interest for row in schedule.periods] == [100, 84, 67, 51, 34, 17]
        assert [row.principal for row in schedule.periods] == [1625, 1641, 1658, 1674, 1691, 1711]
        assert [row.balance for row in schedule.periods] == [8375, 6734, 5076, 3402, 1711, 0]
        assert schedule.total_interest == 353
        assert schedule.total_amount == 10353
        assert schedule.final_balance == 0

    def test_final_period_absorbs_drift(self):
        """The last payment differs from the rest by the rounding drift."""
        schedule = generate_schedule(10000, 12, 6)

        assert [row.payment for row in schedule.periods[:-1]] == [1725] * 5
        assert schedule.periods[-1].payment == 1728

    def test_zero_rate_remainder_in_last_period(self):
        """Rounded-up installments leave a smaller final payment."""
        schedule = generate_schedule(1000, 0, 6)

        assert [row.principal for row in schedule.periods] == [167, 167, 167, 167, 167, 165]

    @pytest.mark.parametrize(
        "principal,rate,periods",
        [
            (10000, 12, 6),
            (99999, Decimal("13.5"), 24),
            (1, Decimal("36"), 12),
            (250000, Decimal("0.01"), 60),
            (7, 0, 3),
        ],
    )
    def test_principal_components_sum_to_principal(self, principal, rate, periods):
        """Every schedule repays exactly the principal."""
        schedule = generate_schedule(principal, rate, periods)

        assert sum(row.principal for row in schedule.periods) == principal
        assert schedule.final_balance == 0
        assert schedule.total_interest == sum(row.interest for row in schedule.periods)
        assert all(row.principal >= 0 and row.interest >= 0 for row in schedule.periods)

    def test_processing_fee_in_total(self):
        """The fee is added to the total payable, not to installments."""
        schedule = generate_schedule(10000, 12, 6, processing_fee=199)

        assert schedule.total_amount == 10000 + 353 + 199
        assert schedule.periodic_payment == 1725

    def test_negative_fee(self):
        """Fees must be non-negative minor units."""
        with pytest.raises(CheckoutValidationError, match="processing_fee"):
            generate_schedule(10000, 12, 6, processing_fee=-1)

    def test_to_dict(self):
        """Schedules serialize with one entry per period."""
        payload = generate_schedule(12000, 0, 12).to_dict()

        assert payload["periodic_payment"] == 1000
        assert payload["annual_rate"] == "0"
        assert len(payload["periods"]) == 12
        assert payload["periods"][0] == {
            "number": 1,
            "payment": 1000,
            "principal": 1000,
            "interest": 0,
            "balance": 11000,
        }


class TestEligibility:
    """Tests for EMI option eligibility."""

    def test_amount_within_band(self, emi_options):
        """An amount inside the band is eligible."""
        assert is_eligible(emi_options[0], 3000) is True
        assert is_eligible(emi_options[0], 500000) is True

    def test_amount_outside_band(self, emi_options):
        """Amounts outside the band are not."""
        assert is_eligible(emi_options[0], 2999) is False
        assert is_eligible(emi_options[0], 500001) is False

    def test_unavailable_option(self, emi_options):
        """Unavailable options never qualify."""
        assert is_eligible(emi_options[2], 50000) is False

    def test_invalid_amount(self, emi_options):
        """Order amounts must be valid minor units."""
        with pytest.raises(CheckoutValidationError):
            is_eligible(emi_options[0], -100)

    def test_eligible_options_keeps_order(self, calculator, emi_options):
        """Filtering keeps the input order."""
        eligible = calculator.eligible_options(emi_options, 6000)

        assert [option.option_id for option in eligible] == ["emi_hdfc_6", "emi_icici_3_nocost"]

    def test_eligible_options_small_order(self, calculator, emi_options):
        """Only the lowest minimum qualifies for a small order."""
        eligible = calculator.eligible_options(emi_options, 4000)

        assert [option.option_id for option in eligible] == ["emi_hdfc_6"]


class TestQuotes:
    """Tests for pricing and comparing EMI options."""

    def test_quote(self, calculator, emi_options):
        """A quote carries the schedule and its cost."""
        quote = calculator.quote(emi_options[0], 6000)

        assert quote is not None
        assert quote.monthly_payment == 1035
        assert quote.schedule.total_interest == 210
        assert quote.total_amount == 6409
        assert quote.cost_of_credit == 409

    def test_no_cost_quote(self, calculator, emi_options):
        """Zero-rate options cost nothing beyond their fee."""
        quote = calculator.quote(emi_options[1], 6000)

        assert quote.option.is_no_cost is True
        assert quote.monthly_payment == 2000
        assert quote.cost_of_credit == 0
        assert quote.to_dict()["no_cost"] is True

    def test_quote_ineligible(self, calculator, emi_options):
        """Ineligible options have no quote."""
        assert calculator.quote(emi_options[2], 50000) is None

    def test_compare_cheapest_first(self, calculator, emi_options):
        """Quotes are ordered by total amount payable."""
        quotes = calculator.compare_options(emi_options, 6000)

        assert [q.option.option_id for q in quotes] == ["emi_icici_3_nocost", "emi_hdfc_6"]

    def test_compare_tie_break(self, calculator):
        """Equal totals fall back to shorter duration, then option id."""
        options = [
            EMIOption(option_id="b_6", provider="B", duration=6, annual_rate=Decimal("0")),
            EMIOption(option_id="a_6", provider="A", duration=6, annual_rate=Decimal("0")),
            EMIOption(option_id="c_3", provider="C", duration=3, annual_rate=Decimal("0")),
        ]

        quotes = calculator.compare_options(options, 9000)

        assert [q.option.option_id for q in quotes] == ["c_3", "a_6", "b_6"]

    def test_compare_nothing_eligible(self, calculator, emi_options):
        """No eligible options means no quotes."""
        assert calculator.compare_options(emi_options, 100) == []
