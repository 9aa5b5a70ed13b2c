"""Coupon ledger: read-only validation and atomic redemption counting."""

import structlog
from protean.utils.globals import current_domain

from checkout.coupon.coupon import Coupon, normalize_code
from checkout.coupon.discount import DiscountQuote, quote
from checkout.errors import CouponExhausted, CouponInvalid, StorageUnavailable

logger = structlog.get_logger(__name__)

MAX_REDEMPTION_ATTEMPTS = 5


class CouponLedger:
    """Validates coupon codes and tracks how many orders consumed each one.

    `validate` never writes. `redeem` is called only after the order that
    consumes the coupon has been saved, and increments `used_count` through
    a compare-and-set that re-checks the limit on every attempt.
    """

    def __init__(self, repository=None):
        self._repository = repository

    @property
    def coupons(self):
        return self._repository or current_domain.repository_for(Coupon)

    def validate(self, code, amount, now=None) -> DiscountQuote:
        """Preview the discount `code` grants on `amount` without consuming it."""
        coupon = self.coupons.find_by_code(code)
        if coupon is None:
            raise CouponInvalid("Invalid or expired coupon", code=normalize_code(code) or "")
        return quote(coupon, amount, now=now)

    def try_redeem(self, coupon: Coupon) -> bool:
        """A single compare-and-set attempt against the count `coupon` was read with."""
        if coupon.is_exhausted():
            return False
        current = coupon.used_count or 0
        return self.coupons.advance_used_count(coupon.id, expected=current, target=current + 1)

    def redeem(self, code) -> int:
        """Record one redemption of `code`. Returns the new `used_count`.

        Raises:
            CouponInvalid: the coupon no longer exists.
            CouponExhausted: the usage limit was reached, possibly by a concurrent order.
            StorageUnavailable: the counter stayed contended for every attempt.
        """
        normalized = normalize_code(code)
        for attempt in range(1, MAX_REDEMPTION_ATTEMPTS + 1):
            coupon = self.coupons.find_by_code(normalized)
            if coupon is None:
                raise CouponInvalid("Coupon no longer exists", code=normalized)
            if coupon.is_exhausted():
                raise CouponExhausted("Coupon usage limit reached", code=normalized)

            if self.try_redeem(coupon):
                used = (coupon.used_count or 0) + 1
                logger.info("Coupon redeemed", code=normalized, used_count=used, limit=coupon.usage_limit)
                return used

            logger.info("Coupon redemption contended, retrying", code=normalized, attempt=attempt)

        raise StorageUnavailable("Coupon ledger is contended, retry later", code=normalized)
