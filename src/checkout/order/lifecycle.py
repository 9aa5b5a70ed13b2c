"""Order lifecycle: creation, status transitions and cancellation.

`OrderLifecycle` owns every write to an order except payment confirmation.
Creation is split into `draft` (validate and price, nothing stored) and
`persist` (store, then consume coupon and cart for pay-on-delivery orders)
so the gateway flow can open its payment session in between.

Status writes are conditional on the status the change was computed from.
Whoever loses a race gets `InvalidTransition` and nothing is notified.
"""

from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from checkout.cart.cart import Cart
from checkout.coupon.coupon import normalize_code
from checkout.coupon.discount import ensure_positive_amount
from checkout.coupon.ledger import CouponLedger
from checkout.errors import CheckoutError, Forbidden, InvalidTransition, OrderNotFound, StorageUnavailable
from checkout.order.order import Actor, Order, PaymentMethod, parse_status
from notifications import LoggingDispatcher, NotificationDispatcher

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Post-write side effects, shared with the payment reconciler
# ---------------------------------------------------------------------------
@contextmanager
def storage_errors(message: str, **context):
    """Surface storage driver failures as a retryable `StorageUnavailable`."""
    try:
        yield
    except (CheckoutError, ValidationError):
        raise
    except Exception as exc:
        logger.error("Order storage failed", error=str(exc), **{k: str(v) for k, v in context.items()})
        raise StorageUnavailable(message, **context) from exc


def notify(dispatcher: NotificationDispatcher, events) -> None:
    """Hand each event to the dispatcher. A failing notifier never fails the caller."""
    for event in events:
        try:
            dispatcher.dispatch(event)
        except Exception as exc:
            logger.error(
                "Notification dispatch failed",
                event_type=event.__class__.__name__,
                order_id=str(getattr(event, "order_id", "")),
                error=str(exc),
            )


def redeem_for_order(order: Order, ledger: CouponLedger, orders) -> bool:
    """Record one redemption of the order's coupon, at most once per order.

    The order's `coupon_redeemed` flag is claimed before the ledger is
    touched, so a live confirmation and the reconciliation job can never
    both count the same order. Returns False when the claim was already
    taken. A ledger failure releases the claim and propagates.
    """
    if not orders.claim_coupon(order.id):
        return False
    try:
        ledger.redeem(order.coupon_code)
    except Exception:
        orders.release_coupon(order.id)
        raise
    order.coupon_redeemed = True
    return True


def consume_checkout(order: Order, ledger: CouponLedger, orders, carts=None) -> None:
    """Redeem the order's coupon and empty the buyer's cart.

    Runs only after the order is durably stored, so nothing here may fail
    the caller. A deferred redemption is picked up by the reconciliation
    job; a cart that could not be cleared is only logged.
    """
    if order.coupon_code:
        try:
            redeem_for_order(order, ledger, orders)
        except Exception as exc:
            logger.warning(
                "Coupon redemption deferred",
                order_id=str(order.id),
                code=order.coupon_code,
                reason=getattr(exc, "reason", str(exc)),
            )

    try:
        carts = carts or current_domain.repository_for(Cart)
        cart = carts.for_customer(order.customer_id)
        if cart is not None and not cart.is_empty():
            cart.clear()
            carts.add(cart)
    except Exception as exc:
        logger.error(
            "Cart could not be cleared",
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            error=str(exc),
        )


def pending_events(order: Order) -> list:
    events = list(order._events)
    order._events.clear()
    return events


class OrderLifecycle:
    def __init__(
        self,
        ledger: CouponLedger | None = None,
        dispatcher: NotificationDispatcher | None = None,
        orders=None,
        carts=None,
    ):
        self.ledger = ledger or CouponLedger()
        self.dispatcher = dispatcher or LoggingDispatcher()
        self._orders = orders
        self._carts = carts

    @property
    def orders(self):
        return self._orders or current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def draft(
        self,
        customer_id,
        items,
        amount,
        address,
        payment_method=PaymentMethod.COD.value,
        coupon_code=None,
        now=None,
    ) -> Order:
        """Validate and price a new order without storing it."""
        if not customer_id:
            raise ValidationError({"customer_id": ["Customer is required"]})
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})
        amount = ensure_positive_amount(amount)
        if not address:
            raise ValidationError({"address": ["Shipping address is required"]})
        if payment_method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unknown payment method '{payment_method}'"]})

        code = normalize_code(coupon_code) or None
        discount = 0
        if code:
            discount = self.ledger.validate(code, amount, now=now).discount

        return Order.place(
            customer_id=customer_id,
            items_data=items,
            pre_discount_amount=amount,
            shipping_address=address,
            payment_method=payment_method,
            coupon_code=code,
            discount=discount,
        )

    def persist(self, order: Order) -> Order:
        """Store a drafted order, then run its post-placement side effects."""
        events = list(order._events)
        with storage_errors("Could not store the order, retry later", order_id=order.id):
            self.orders.add(order)
        order._events.clear()

        logger.info(
            "Order placed",
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            payment_method=order.payment_method,
            amount=order.amount,
            coupon_code=order.coupon_code,
        )

        if order.payment_method == PaymentMethod.COD.value:
            consume_checkout(order, self.ledger, self.orders, self._carts)

        notify(self.dispatcher, events)
        return order

    def create(self, customer_id, items, amount, address, payment_method=PaymentMethod.COD.value, coupon_code=None):
        return self.persist(
            self.draft(
                customer_id=customer_id,
                items=items,
                amount=amount,
                address=address,
                payment_method=payment_method,
                coupon_code=coupon_code,
            )
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, order_id) -> Order:
        with storage_errors("Could not load the order, retry later", order_id=order_id):
            order = self.orders.find(order_id)
        if order is None:
            raise OrderNotFound("Order not found", order_id=order_id)
        return order

    def orders_for(self, customer_id) -> list[Order]:
        return self.orders.for_customer(customer_id)

    def all_orders(self) -> list[Order]:
        return self.orders.newest_first()

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def update_status(self, order_id, new_status, actor=Actor.ADMIN.value) -> Order:
        """Move an order to `new_status` along the transition map."""
        target = parse_status(new_status)
        order = self.get(order_id)
        previous = order.transition_to(target, changed_by=actor)
        return self._commit_transition(order, previous)

    def cancel(self, order_id, requested_by, reason=None, actor=Actor.CUSTOMER.value) -> Order:
        """Cancel an order. Customers may only cancel their own orders."""
        order = self.get(order_id)
        if actor == Actor.CUSTOMER.value and not order.owned_by(requested_by):
            raise Forbidden("You can only cancel your own orders", order_id=order_id)

        previous = order.cancel(reason=reason, cancelled_by=actor)
        return self._commit_transition(order, previous)

    def _commit_transition(self, order: Order, previous: str) -> Order:
        changes = {
            "status": order.status,
            "updated_at": order.updated_at or datetime.now(UTC),
        }
        if order.cancelled_by:
            changes["cancellation_reason"] = order.cancellation_reason
            changes["cancelled_by"] = order.cancelled_by

        if not self.orders.compare_and_set(order.id, expected={"status": previous}, changes=changes):
            current = self.get(order.id)
            raise InvalidTransition(
                f"Order changed concurrently and is now {current.status}",
                order_id=order.id,
                status=current.status,
            )

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.status,
        )
        notify(self.dispatcher, pending_events(order))
        return order
