"""Discount calculation: flat and percentage coupons, and every rejection rule."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from checkout.coupon.coupon import Coupon
from checkout.coupon.discount import calculate_discount, quote
from checkout.errors import Conflict, CouponExhausted, CouponInvalid, MinimumNotMet


def _coupon(**overrides):
    data = {
        "code": "save20",
        "discount_type": "percent",
        "value": 20,
        "expires_at": datetime.now(UTC) + timedelta(days=7),
        "min_order_value": 500,
        "usage_limit": 1,
    }
    data.update(overrides)
    return Coupon.create(**data)


class TestDiscountAmount:
    def test_percentage_of_amount(self):
        assert calculate_discount(_coupon(), 1000) == 200

    def test_percentage_is_floored(self):
        assert calculate_discount(_coupon(value=15, min_order_value=0), 999) == 149

    def test_flat_discount(self):
        coupon = _coupon(discount_type="flat", value=150, min_order_value=0)
        assert calculate_discount(coupon, 1000) == 150

    def test_flat_discount_capped_at_amount(self):
        coupon = _coupon(discount_type="flat", value=5000, min_order_value=0)
        assert calculate_discount(coupon, 1200) == 1200

    def test_hundred_percent_discount_equals_amount(self):
        coupon = _coupon(value=100, min_order_value=0)
        assert calculate_discount(coupon, 731) == 731

    def test_amount_equal_to_minimum_qualifies(self):
        assert calculate_discount(_coupon(min_order_value=1000), 1000) == 200


class TestDiscountRejections:
    def test_missing_coupon(self):
        with pytest.raises(CouponInvalid):
            calculate_discount(None, 1000)

    def test_inactive_coupon(self):
        coupon = _coupon()
        coupon.is_active = False
        with pytest.raises(CouponInvalid):
            calculate_discount(coupon, 1000)

    def test_expired_coupon(self):
        coupon = _coupon(expires_at=datetime.now(UTC) - timedelta(seconds=1))
        with pytest.raises(CouponInvalid):
            calculate_discount(coupon, 1000)

    def test_coupon_expiring_exactly_now_is_expired(self):
        now = datetime.now(UTC)
        coupon = _coupon(expires_at=now)
        with pytest.raises(CouponInvalid):
            calculate_discount(coupon, 1000, now=now)

    def test_exhausted_coupon(self):
        coupon = _coupon()
        coupon.used_count = 1
        with pytest.raises(CouponExhausted) as exc:
            calculate_discount(coupon, 1000)
        assert isinstance(exc.value, Conflict)
        assert exc.value.status_code == 409

    def test_below_minimum(self):
        with pytest.raises(MinimumNotMet) as exc:
            calculate_discount(_coupon(), 499)
        assert exc.value.reason == "minimum_not_met"

    @pytest.mark.parametrize("amount", [0, -10, 10.5, "1000", True])
    def test_amount_must_be_positive_integer(self, amount):
        with pytest.raises(ValidationError):
            calculate_discount(_coupon(min_order_value=0), amount)


class TestQuote:
    def test_quote_carries_final_amount(self):
        result = quote(_coupon(), 1000)
        assert result.code == "SAVE20"
        assert result.discount == 200
        assert result.final_amount == 800
        assert result.to_dict()["final_amount"] == 800

    def test_quote_never_touches_used_count(self):
        coupon = _coupon()
        quote(coupon, 1000)
        quote(coupon, 1000)
        assert coupon.used_count == 0
