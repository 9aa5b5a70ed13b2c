"""Payment gateway port (abstract interface).

Checkout only needs one thing from the gateway: open a checkout session
(a gateway-side order the customer pays against). The payment itself is proven by a signature, verified in
`checkout.payment.signature`, so no card data ever passes through here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class GatewayError(Exception):
    """Raised by adapters when the gateway cannot be reached or refuses the call."""


@dataclass(frozen=True)
class GatewaySession:
    """A gateway-side order, amounts in the currency's smallest unit."""

    gateway_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str = "created"
    raw: dict = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {
            "id": self.gateway_order_id,
            "amount": self.amount_minor,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status,
        }


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewaySession:
        """Open a checkout session for `amount_minor` units of `currency`."""
        ...

    def close(self) -> None:
        """Release connections held by the adapter. Called once at shutdown."""
