"""Coupon reconciliation: closes gaps left by deferred redemptions.

A coupon redemption that fails after its order was stored is logged and
skipped rather than undoing the order. Such orders keep
`coupon_redeemed=False`. This job finds them per coupon and redeems each
one through the same per-order claim the live path uses, so an order is
never counted twice however the job interleaves with confirmations.
Orders that no longer fit under `usage_limit` are reported as overflow
for an operator to look at.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from checkout.coupon.coupon import Coupon
from checkout.coupon.ledger import CouponLedger
from checkout.errors import CheckoutError, CouponExhausted
from checkout.order.lifecycle import redeem_for_order
from checkout.order.order import Order

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationEntry:
    code: str
    recorded: int
    pending: int
    redeemed: int
    adjusted_to: int
    overflow: int = 0

    @property
    def changed(self) -> bool:
        return self.redeemed > 0

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "recorded": self.recorded,
            "pending": self.pending,
            "redeemed": self.redeemed,
            "adjusted_to": self.adjusted_to,
            "overflow": self.overflow,
        }


class CouponReconciler:
    def __init__(self, coupons=None, orders=None, ledger: CouponLedger | None = None):
        self._coupons = coupons
        self._orders = orders
        self._ledger = ledger

    @property
    def coupons(self):
        return self._coupons or current_domain.repository_for(Coupon)

    @property
    def orders(self):
        return self._orders or current_domain.repository_for(Order)

    @property
    def ledger(self) -> CouponLedger:
        return self._ledger or CouponLedger(self._coupons)

    def reconcile(self) -> list[ReconciliationEntry]:
        entries = [self.reconcile_coupon(coupon) for coupon in self.coupons.newest_first()]
        logger.info(
            "Coupon reconciliation finished",
            coupons=len(entries),
            adjusted=sum(1 for e in entries if e.changed),
            overflowing=sum(1 for e in entries if e.overflow),
        )
        return entries

    def reconcile_coupon(self, coupon: Coupon) -> ReconciliationEntry:
        recorded = coupon.used_count or 0
        pending = self.orders.awaiting_redemption(coupon.code)

        ledger = self.ledger
        redeemed = overflow = 0
        for order in pending:
            try:
                if redeem_for_order(order, ledger, self.orders):
                    redeemed += 1
            except CouponExhausted:
                overflow += 1
            except CheckoutError as exc:
                # Left unclaimed; the next run retries it
                logger.warning(
                    "Deferred redemption still failing",
                    code=coupon.code,
                    order_id=str(order.id),
                    reason=exc.reason,
                )

        if redeemed:
            logger.info("Coupon usage advanced", code=coupon.code, previous=recorded, redeemed=redeemed)
        if overflow:
            logger.warning(
                "Coupon consumed beyond its usage limit",
                code=coupon.code,
                overflow=overflow,
                limit=coupon.usage_limit,
            )

        current = self.coupons.find_by_code(coupon.code)
        return ReconciliationEntry(
            code=coupon.code,
            recorded=recorded,
            pending=len(pending),
            redeemed=redeemed,
            adjusted_to=(current.used_count or 0) if current is not None else recorded,
            overflow=overflow,
        )
