"""Payment gateway factory.

`build_gateway(settings)` constructs the adapter named in configuration:
- FakeGateway for development and testing
- RazorpayGateway for production

The result is injected into the payment reconciler; there is no module-level
gateway instance.
"""

from checkout.config import CheckoutSettings
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.port import GatewayError, GatewaySession, PaymentGateway

__all__ = ["FakeGateway", "GatewayError", "GatewaySession", "PaymentGateway", "build_gateway"]


def build_gateway(settings: CheckoutSettings) -> PaymentGateway:
    if settings.gateway == "fake":
        return FakeGateway(key_secret=settings.gateway_key_secret)
    if settings.gateway == "razorpay":
        from checkout.gateway.razorpay_adapter import RazorpayGateway

        return RazorpayGateway(
            key_id=settings.gateway_key_id,
            key_secret=settings.gateway_key_secret,
            base_url=settings.gateway_base_url,
            timeout=settings.gateway_timeout,
        )
    raise ValueError(f"Unknown payment gateway: {settings.gateway}")
