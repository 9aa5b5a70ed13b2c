"""Payment reconciliation: turns payment proof into a confirmed order, exactly once.

Two kinds of proof are accepted:

- pay-on-delivery: an operator (or the owner) confirms cash was collected;
- gateway: the client, or the gateway's server-to-server callback, submits
  the gateway order id, payment id and HMAC signature.

Either way the confirmation is a conditional write of
`payment_confirmed: False -> True`. Only the request that wins that write
redeems the coupon, clears the cart and notifies. Replays and duplicate
callbacks get the stored confirmed order back with no side effects, so a
client may always retry with the same inputs.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from checkout.config import CheckoutSettings
from checkout.coupon.ledger import CouponLedger
from checkout.errors import (
    Forbidden,
    GatewayUnavailable,
    InvalidTransition,
    OrderNotFound,
    SignatureMismatch,
    StorageUnavailable,
    WrongMethod,
)
from checkout.gateway.port import GatewayError, GatewaySession, PaymentGateway
from checkout.order.lifecycle import consume_checkout, notify, pending_events, storage_errors
from checkout.order.order import Order, OrderStatus, PaymentMethod
from checkout.payment.signature import is_valid_signature
from notifications import LoggingDispatcher, NotificationDispatcher

logger = structlog.get_logger(__name__)

MAX_PROOF_FIELD_LENGTH = 255


@dataclass(frozen=True)
class PaymentStatusView:
    order_id: str
    status: str
    payment_method: str
    payment_confirmed: bool
    amount: int
    gateway_order_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_confirmed": self.payment_confirmed,
            "amount": self.amount,
            "gateway_order_id": self.gateway_order_id,
        }


def _require_proof_fields(**values) -> None:
    errors = {}
    for name, value in values.items():
        if not isinstance(value, str) or not value.strip():
            errors[name] = [f"{name} is required"]
        elif len(value) > MAX_PROOF_FIELD_LENGTH:
            errors[name] = [f"{name} is too long"]
    if errors:
        raise ValidationError(errors)


class PaymentReconciler:
    def __init__(
        self,
        gateway: PaymentGateway,
        settings: CheckoutSettings,
        ledger: CouponLedger | None = None,
        dispatcher: NotificationDispatcher | None = None,
        orders=None,
        carts=None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.ledger = ledger or CouponLedger()
        self.dispatcher = dispatcher or LoggingDispatcher()
        self._orders = orders
        self._carts = carts

    @property
    def orders(self):
        return self._orders or current_domain.repository_for(Order)

    def _load(self, order_id) -> Order:
        with storage_errors("Could not load the order, retry later", order_id=order_id):
            order = self.orders.find(order_id)
        if order is None:
            raise OrderNotFound("Order not found", order_id=order_id)
        return order

    # -------------------------------------------------------------------
    # Gateway session
    # -------------------------------------------------------------------
    def open_gateway_session(self, order: Order) -> GatewaySession:
        """Open a gateway checkout session for a drafted, not yet stored, order."""
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise WrongMethod("Only gateway orders open a gateway session", order_id=order.id)
        if order.amount <= 0:
            raise ValidationError({"amount": ["Nothing left to pay online, place a pay-on-delivery order instead"]})

        amount_minor = self.settings.to_minor_units(order.amount)
        try:
            session = self.gateway.create_order(amount_minor, self.settings.currency, receipt=str(order.id))
        except GatewayError as exc:
            logger.error("Gateway session could not be opened", order_id=str(order.id), error=str(exc))
            raise GatewayUnavailable("Payment gateway is unavailable, try again later", order_id=order.id) from exc

        order.bind_gateway_order(session.gateway_order_id)
        logger.info(
            "Gateway session opened",
            order_id=str(order.id),
            gateway_order_id=session.gateway_order_id,
            amount_minor=amount_minor,
        )
        return session

    # -------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------
    def confirm_cod(self, order_id, requested_by=None) -> Order:
        """Confirm a pay-on-delivery order was paid. Idempotent.

        `requested_by`, when given, must own the order. Operators pass None.
        A cancelled order that was never paid cannot be confirmed; gateway
        proofs are still recorded on cancelled orders because money moved.
        """
        order = self._load(order_id)
        self._check_owner(order, requested_by)
        if order.payment_method != PaymentMethod.COD.value:
            raise WrongMethod("Order is not a pay-on-delivery order", order_id=order_id)
        if order.status == OrderStatus.CANCELLED.value and not order.payment_confirmed:
            raise InvalidTransition("Cancelled orders cannot be marked as paid", order_id=order_id, status=order.status)
        return self._confirm(order)

    def verify_gateway_payment(
        self, order_id, gateway_order_id, gateway_payment_id, signature, requested_by=None
    ) -> Order:
        """Confirm a gateway order from a signed payment proof. Idempotent."""
        _require_proof_fields(
            order_id=str(order_id or ""),
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            signature=signature,
        )
        self._check_signature(gateway_order_id, gateway_payment_id, signature)

        order = self._load(order_id)
        self._check_owner(order, requested_by)
        return self._confirm_gateway_order(order, gateway_order_id, gateway_payment_id)

    def handle_gateway_callback(self, gateway_order_id, gateway_payment_id, signature) -> Order:
        """Server-to-server confirmation, where the gateway only knows its own order id."""
        _require_proof_fields(
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            signature=signature,
        )
        self._check_signature(gateway_order_id, gateway_payment_id, signature)

        with storage_errors("Could not load the order, retry later", gateway_order_id=gateway_order_id):
            order = self.orders.find_by_gateway_order(gateway_order_id)
        if order is None:
            raise OrderNotFound("No order for this gateway session", gateway_order_id=gateway_order_id)
        return self._confirm_gateway_order(order, gateway_order_id, gateway_payment_id)

    @staticmethod
    def _check_owner(order: Order, requested_by) -> None:
        if requested_by is not None and not order.owned_by(requested_by):
            raise Forbidden("You can only pay for your own orders", order_id=order.id)

    def _check_signature(self, gateway_order_id, gateway_payment_id, signature) -> None:
        if not is_valid_signature(self.settings.gateway_key_secret, gateway_order_id, gateway_payment_id, signature):
            logger.warning(
                "Payment signature mismatch",
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
            )
            raise SignatureMismatch("Payment signature is invalid", gateway_order_id=gateway_order_id)

    def _confirm_gateway_order(self, order: Order, gateway_order_id, gateway_payment_id) -> Order:
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise WrongMethod("Order is not a gateway order", order_id=order.id)
        if order.gateway_order_id != gateway_order_id:
            raise SignatureMismatch("Payment proof belongs to a different order", order_id=order.id)
        return self._confirm(order, gateway_payment_id=gateway_payment_id)

    def _confirm(self, order: Order, gateway_payment_id=None) -> Order:
        if not order.confirm_payment(gateway_payment_id=gateway_payment_id):
            logger.info("Payment already confirmed", order_id=str(order.id))
            return order

        changes = {
            "payment_confirmed": True,
            "payment_confirmed_at": order.payment_confirmed_at,
            "updated_at": order.updated_at,
        }
        if gateway_payment_id:
            changes["gateway_payment_id"] = gateway_payment_id

        try:
            won = self.orders.compare_and_set(order.id, expected={"payment_confirmed": False}, changes=changes)
        except Exception as exc:
            logger.error("Payment confirmation write failed", order_id=str(order.id), error=str(exc))
            raise StorageUnavailable("Could not record the payment, retry later", order_id=order.id) from exc

        if not won:
            logger.info("Payment confirmed by a concurrent request", order_id=str(order.id))
            return self._load(order.id)

        logger.info(
            "Payment confirmed",
            order_id=str(order.id),
            payment_method=order.payment_method,
            gateway_payment_id=gateway_payment_id,
        )
        if order.payment_method == PaymentMethod.GATEWAY.value:
            consume_checkout(order, self.ledger, self.orders, self._carts)
        notify(self.dispatcher, pending_events(order))
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def check_payment_status(self, order_id) -> PaymentStatusView:
        order = self._load(order_id)
        return PaymentStatusView(
            order_id=str(order.id),
            status=order.status,
            payment_method=order.payment_method,
            payment_confirmed=bool(order.payment_confirmed),
            amount=order.amount,
            gateway_order_id=order.gateway_order_id,
        )
