"""Configurable fake payment gateway for development and testing.

No external calls. Sessions are kept in memory, every call is recorded,
and the adapter can be told to fail so callers can be exercised against an
unreachable gateway. `sign_payment` produces the proof a real gateway would
send back after the customer pays.
"""

from uuid import uuid4

from checkout.gateway.port import GatewayError, GatewaySession, PaymentGateway
from checkout.payment.signature import sign


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, key_secret: str = "test-secret") -> None:
        self.key_secret = key_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unreachable"
        self.calls: list[dict] = []
        self.sessions: dict[str, GatewaySession] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unreachable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewaySession:
        self.calls.append(
            {
                "method": "create_order",
                "amount_minor": amount_minor,
                "currency": currency,
                "receipt": receipt,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        session = GatewaySession(
            gateway_order_id=f"order_{uuid4().hex[:14]}",
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
        )
        self.sessions[session.gateway_order_id] = session
        return session

    def sign_payment(self, gateway_order_id: str, gateway_payment_id: str | None = None) -> tuple[str, str]:
        """Simulate a completed payment. Returns `(gateway_payment_id, signature)`."""
        gateway_payment_id = gateway_payment_id or f"pay_{uuid4().hex[:14]}"
        return gateway_payment_id, sign(self.key_secret, gateway_order_id, gateway_payment_id)
