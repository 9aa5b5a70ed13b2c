"""Discount calculation: a pure function of a coupon and an order amount.

Both the coupon preview and order placement go through
`calculate_discount`, so a previewed discount is always the discount that
checkout applies.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from checkout.coupon.coupon import DiscountType
from checkout.errors import CouponExhausted, CouponInvalid, MinimumNotMet


@dataclass(frozen=True)
class DiscountQuote:
    code: str
    discount_type: str
    value: int
    amount: int
    discount: int

    @property
    def final_amount(self) -> int:
        return self.amount - self.discount

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "discount_type": self.discount_type,
            "value": self.value,
            "amount": self.amount,
            "discount": self.discount,
            "final_amount": self.final_amount,
        }


def ensure_positive_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError({"amount": ["Amount must be a positive whole number"]})
    return amount


def calculate_discount(coupon, amount, now=None) -> int:
    """Return the discount `coupon` grants on `amount`.

    Raises:
        CouponInvalid: coupon missing, inactive or expired.
        CouponExhausted: usage limit reached.
        MinimumNotMet: amount below the coupon's minimum order value.
    """
    amount = ensure_positive_amount(amount)

    if coupon is None:
        raise CouponInvalid("Invalid or expired coupon")
    if not coupon.is_active or coupon.is_expired(now):
        raise CouponInvalid("Invalid or expired coupon", code=coupon.code)
    if coupon.is_exhausted():
        raise CouponExhausted("Coupon usage limit reached", code=coupon.code)
    if amount < (coupon.min_order_value or 0):
        raise MinimumNotMet(
            f"Minimum order value is {coupon.min_order_value}",
            code=coupon.code,
            min_order_value=coupon.min_order_value,
        )

    if coupon.discount_type == DiscountType.PERCENT.value:
        # Integer floor keeps fractional units from ever being granted
        return min(coupon.value * amount // 100, amount)
    return min(coupon.value, amount)


def quote(coupon, amount, now=None) -> DiscountQuote:
    discount = calculate_discount(coupon, amount, now=now)
    return DiscountQuote(
        code=coupon.code,
        discount_type=coupon.discount_type,
        value=coupon.value,
        amount=amount,
        discount=discount,
    )
