"""Domain events for the Coupon aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Coupon")
class CouponCreated:
    """An operator created a new promotional code."""

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    value = Integer(required=True)
    min_order_value = Integer()
    usage_limit = Integer()
    expires_at = DateTime(required=True)
    created_by = Identifier()

