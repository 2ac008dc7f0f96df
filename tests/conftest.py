"""
Pytest configuration for storefront-checkout tests.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("STOREFRONT_ENVIRONMENT", "dev")
os.environ.setdefault("STOREFRONT_DEFAULT_CURRENCY", "INR")

from storefront_checkout.models import (  # noqa: E402
    CartSnapshot,
    Coupon,
    DiscountKind,
    EMIOption,
    LineItem,
)


@pytest.fixture
def now():
    """Fixed evaluation instant."""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_cart():
    """Cart with three lines across two categories (subtotal 1000)."""
    return CartSnapshot.from_line_items(
        [
            LineItem(product_id="prod_shirt", category_id="cat_apparel", unit_price=300, quantity=2),
            LineItem(product_id="prod_cap", category_id="cat_apparel", unit_price=100, quantity=1),
            LineItem(product_id="prod_mug", category_id="cat_home", unit_price=300, quantity=1),
        ],
        shipping_cost=80,
    )


@pytest.fixture
def make_coupon(now):
    """Factory for coupons valid around ``now``."""

    def _make(code="SAVE10", kind=DiscountKind.PERCENTAGE, value=Decimal("10"), **overrides):
        fields = {
            "valid_from": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "valid_until": datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return Coupon(code=code, kind=kind, value=value, **fields)

    return _make


@pytest.fixture
def emi_options():
    """EMI plans offered by three lenders."""
    return [
        EMIOption(
            option_id="emi_hdfc_6",
            provider="HDFC Bank",
            duration=6,
            annual_rate=Decimal("12"),
            processing_fee=199,
            minimum_amount=3000,
            maximum_amount=500000,
        ),
        EMIOption(
            option_id="emi_icici_3_nocost",
            provider="ICICI Bank",
            duration=3,
            annual_rate=Decimal("0"),
            minimum_amount=5000,
        ),
        EMIOption(
            option_id="emi_axis_12",
            provider="Axis Bank",
            duration=12,
            annual_rate=Decimal("15"),
            minimum_amount=10000,
            is_available=False,
        ),
    ]
