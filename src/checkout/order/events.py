"""Domain events for the Order aggregate.

These are also the lifecycle notices handed to the notification dispatcher,
so each carries enough context (customer, amounts, statuses) for a
notifier to act without loading the order.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order at checkout."""

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    item_count = Integer(required=True)
    pre_discount_amount = Integer(required=True)
    discount = Integer(default=0)
    amount = Integer(required=True)
    coupon_code = String()
    placed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderStatusChanged:
    """The order moved from one lifecycle status to another."""

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = String()
    reason = String()
    changed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class PaymentConfirmed:
    """Payment for the order was confirmed, either on delivery or by the gateway."""

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    amount = Integer(required=True)
    gateway_order_id = String()
    gateway_payment_id = String()
    purchase_confirmation = Boolean(default=False)
    confirmed_at = DateTime(required=True)
