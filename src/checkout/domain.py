"""Checkout bounded context: Orders, Coupons, Carts and Payment confirmation.

Handles order placement with coupon discounts, the order status lifecycle,
and reconciliation of pay-on-delivery and gateway payments. Every
money-affecting change (discount usage, payment confirmation, status) is
written with a conditional update so it happens exactly once.
"""

from protean.domain import Domain

from checkout.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

checkout = Domain(name="checkout")
