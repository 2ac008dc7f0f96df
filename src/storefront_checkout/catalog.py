"""
Coupon catalog snapshot and eligibility ranking.

The catalog is an explicit object owned by the checkout collaborator: it is
filled by ``refresh`` and emptied by ``invalidate``, and is passed by
parameter to the filter. Nothing here keeps coupons in module state.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .discounts import (
    DiscountRuleEvaluator,
    validate_cart,
    validate_coupon,
    validate_customer,
    validate_instant,
)
from .exceptions import CatalogError, CheckoutValidationError
from .models import CartSnapshot, Coupon, CustomerContext, DiscountResult, FailureReason, normalize_code
from .schemas import CouponRecord

logger = logging.getLogger(__name__)

CouponSource = Iterable[Union[Coupon, Mapping[str, object]]]
CouponLoader = Callable[[], CouponSource]


class CouponCatalog:
    """
    Read-only snapshot of the coupons published by the system of record.

    A refresh replaces the whole snapshot at once; readers holding the
    previous ``coupons`` tuple keep a consistent view.
    """

    def __init__(self, loader: Optional[CouponLoader] = None):
        self._loader = loader
        self._coupons: Optional[Tuple[Coupon, ...]] = None
        self._by_code: Dict[str, Coupon] = {}
        self.refreshed_at: Optional[datetime] = None
        self.version = 0

    @property
    def is_loaded(self) -> bool:
        return self._coupons is not None

    @property
    def coupons(self) -> Tuple[Coupon, ...]:
        """Current snapshot, loading it through the loader if needed.

        Raises:
            CatalogError: If the catalog is empty and has no loader
        """
        return self._ensure_loaded()

    def _ensure_loaded(self) -> Tuple[Coupon, ...]:
        if self._coupons is None:
            if self._loader is None:
                raise CatalogError("Coupon catalog has not been loaded")
            return self.refresh(self._loader())
        return self._coupons

    def refresh(self, source: CouponSource) -> Tuple[Coupon, ...]:
        """
        Replace the snapshot with ``source``.

        Entries may be Coupon objects or raw catalog records (dicts in the
        backend's camelCase shape).

        Raises:
            CheckoutValidationError: If a record is malformed or two
                coupons share a code; the previous snapshot is kept
        """
        coupons: List[Coupon] = []
        by_code: Dict[str, Coupon] = {}
        for entry in source:
            coupon = entry if isinstance(entry, Coupon) else CouponRecord.parse(entry).to_domain()
            validate_coupon(coupon)
            key = coupon.normalized_code
            if key in by_code:
                raise CheckoutValidationError(
                    f"Duplicate coupon code in catalog: {coupon.code}",
                    field="code",
                    details={"code": coupon.code},
                )
            by_code[key] = coupon
            coupons.append(coupon)

        self._coupons = tuple(coupons)
        self._by_code = by_code
        self.refreshed_at = datetime.now(timezone.utc)
        self.version += 1
        logger.info(
            "Coupon catalog refreshed",
            extra={"coupon_count": len(coupons), "catalog_version": self.version},
        )
        return self._coupons

    def refresh_from(self, loader: CouponLoader) -> Tuple[Coupon, ...]:
        """Use ``loader`` from now on and refresh from it immediately."""
        self._loader = loader
        return self.refresh(loader())

    def invalidate(self) -> None:
        """Drop the snapshot; the next read reloads through the loader."""
        self._coupons = None
        self._by_code = {}
        logger.info("Coupon catalog invalidated", extra={"catalog_version": self.version})

    def get(self, code: str) -> Optional[Coupon]:
        """Look a coupon up by code, ignoring case and surrounding spaces."""
        self._ensure_loaded()
        return self._by_code.get(normalize_code(code))

    def __len__(self) -> int:
        return len(self.coupons)

    def __iter__(self) -> Iterator[Coupon]:
        return iter(self.coupons)


class RankedCoupons:
    """
    Eligible coupons for one cart, best offer first.

    Iterating recomputes the ranking from the inputs, so the sequence can
    be restarted and never carries state between iterations.
    """

    def __init__(
        self,
        evaluator: DiscountRuleEvaluator,
        coupons: Tuple[Coupon, ...],
        cart: CartSnapshot,
        now: datetime,
        customer: Optional[CustomerContext] = None,
    ):
        self._evaluator = evaluator
        self._coupons = coupons
        self._cart = cart
        self._now = now
        self._customer = customer

    def ranked(self) -> List[Tuple[Coupon, int]]:
        """Eligible coupons paired with their discount amounts, ranked."""
        scored: List[Tuple[Coupon, int]] = []
        for coupon in self._coupons:
            failure = self._evaluator.check_preconditions(
                coupon, self._cart, self._now, self._customer
            )
            if failure is not None:
                continue
            amount, failure = self._evaluator.compute_amount(coupon, self._cart)
            if failure is not None:
                continue
            scored.append((coupon, amount))

        # Stable sorts, least significant key first
        scored.sort(key=lambda pair: pair[0].normalized_code)
        # Never-expiring coupons count as the latest expiry
        open_ended = [pair for pair in scored if pair[0].valid_until is None]
        dated = [pair for pair in scored if pair[0].valid_until is not None]
        dated.sort(key=lambda pair: pair[0].valid_until, reverse=True)
        scored = open_ended + dated
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored

    def __iter__(self) -> Iterator[Coupon]:
        for coupon, _ in self.ranked():
            yield coupon

    def __len__(self) -> int:
        return len(self.ranked())

    def best(self) -> Optional[Coupon]:
        for coupon in self:
            return coupon
        return None


class CouponCatalogFilter:
    """
    Recommends coupons for a cart.

    Features:
    - Eligibility by validity window, usage and customer limits, minimum
      order and scope
    - Ranking by discount amount, then later expiry, then code
    - Code lookup against a catalog with a full evaluation
    """

    def __init__(self, evaluator: Optional[DiscountRuleEvaluator] = None):
        self.evaluator = evaluator or DiscountRuleEvaluator()

    def filter_eligible(
        self,
        coupons: Union[CouponCatalog, Iterable[Coupon]],
        cart: CartSnapshot,
        now: datetime,
        customer: Optional[CustomerContext] = None,
    ) -> RankedCoupons:
        """
        Coupons that currently apply to ``cart``, best offer first.

        Stacking is not considered here; it is checked when a coupon is
        actually applied.

        Raises:
            CheckoutValidationError: If the cart or a coupon is malformed
        """
        validate_cart(cart)
        if customer is not None:
            validate_customer(customer)
        snapshot = tuple(coupons)
        for coupon in snapshot:
            validate_coupon(coupon)
            validate_instant(now, coupon)
        return RankedCoupons(self.evaluator, snapshot, cart, now, customer)

    def apply_code(
        self,
        catalog: CouponCatalog,
        code: str,
        cart: CartSnapshot,
        now: datetime,
        already_applied: Optional[Coupon] = None,
        customer: Optional[CustomerContext] = None,
    ) -> DiscountResult:
        """Evaluate the coupon a customer typed, by code."""
        coupon = catalog.get(code) if isinstance(code, str) else None
        if coupon is None:
            logger.debug("Unknown coupon code", extra={"coupon_code": code})
            return DiscountResult.failure(FailureReason.NOT_FOUND, code if isinstance(code, str) else None)
        return self.evaluator.evaluate(coupon, cart, now, already_applied, customer)


def filter_eligible(
    coupons: Union[CouponCatalog, Iterable[Coupon]],
    cart: CartSnapshot,
    now: datetime,
    customer: Optional[CustomerContext] = None,
) -> RankedCoupons:
    """Rank with a default-configured CouponCatalogFilter."""
    return CouponCatalogFilter().filter_eligible(coupons, cart, now, customer)
