"""Checkout API package."""

from checkout.api.dependencies import install_services, shutdown_services
from checkout.api.errors import register_checkout_exception_handlers
from checkout.api.routes import cart_router, coupon_router, order_router

__all__ = [
    "cart_router",
    "coupon_router",
    "install_services",
    "order_router",
    "register_checkout_exception_handlers",
    "shutdown_services",
]
