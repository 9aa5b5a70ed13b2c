"""Order aggregate: the record of what a customer bought and what they owe.

The discount is frozen into the order when it is placed and never
recomputed. After placement the only things that change are the lifecycle
status and the payment confirmation, and both are written through
`OrderRepository.compare_and_set` so duplicate or racing requests cannot
apply the same change twice.

State Machine:
    Order placed → Packing → Shipping → Out for delivery → Delivered
    Cancelled (from Order placed or Packing)
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from checkout.domain import checkout
from checkout.errors import InvalidTransition, WrongMethod
from checkout.order.events import OrderPlaced, OrderStatusChanged, PaymentConfirmed


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PLACED = "Order placed"
    PACKING = "Packing"
    SHIPPING = "Shipping"
    OUT_FOR_DELIVERY = "Out for delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentMethod(Enum):
    COD = "COD"
    GATEWAY = "Gateway"


class Actor(Enum):
    CUSTOMER = "Customer"
    ADMIN = "Admin"
    SYSTEM = "System"


_VALID_TRANSITIONS = {
    OrderStatus.PLACED: {OrderStatus.PACKING, OrderStatus.CANCELLED},
    OrderStatus.PACKING: {OrderStatus.SHIPPING, OrderStatus.CANCELLED},
    OrderStatus.SHIPPING: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

CANCELLABLE_STATES = frozenset({OrderStatus.PLACED, OrderStatus.PACKING})


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError({"status": [f"Unknown status '{value}'. Expected one of: {allowed}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Order")
class ShippingAddress:
    """Where the order goes, captured as entered at checkout."""

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    email = String(max_length=255)
    phone = String(max_length=30)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@checkout.entity(part_of="Order")
class OrderItem:
    """A purchased product variant, with name and image copied from the catalog."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    size = String(max_length=50, default="N/A")
    image = String(max_length=1000)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@checkout.aggregate
class Order:
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    pre_discount_amount = Integer(required=True, min_value=1)
    discount = Integer(default=0, min_value=0)
    amount = Integer(required=True, min_value=0)
    shipping_address = ValueObject(ShippingAddress)
    status = String(choices=OrderStatus, default=OrderStatus.PLACED.value)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_confirmed = Boolean(default=False)
    payment_confirmed_at = DateTime()
    gateway_order_id = String(max_length=255)
    gateway_payment_id = String(max_length=255)
    coupon_code = String(max_length=50)
    coupon_redeemed = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=Actor)
    placed_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def discount_never_exceeds_pre_discount_amount(self):
        if (self.discount or 0) > (self.pre_discount_amount or 0):
            raise ValidationError({"discount": ["Discount cannot exceed the order amount"]})

    @invariant.post
    def amount_is_pre_discount_amount_less_discount(self):
        if self.amount != (self.pre_discount_amount or 0) - (self.discount or 0):
            raise ValidationError({"amount": ["Amount must equal the pre-discount amount less the discount"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        items_data,
        pre_discount_amount,
        shipping_address,
        payment_method,
        coupon_code=None,
        discount=0,
    ):
        """Build a new order in `Order placed`, unpaid, with its discount frozen in.

        Args:
            customer_id: The buyer.
            items_data: List of dicts with product_id, name, quantity,
                        unit_price, and optional size and image.
            pre_discount_amount: Positive integer amount before discount.
            shipping_address: Dict matching `ShippingAddress`.
            payment_method: A `PaymentMethod` value.
            coupon_code: Normalized code the discount came from, if any.
            discount: Integer discount already computed for `coupon_code`.
        """
        now = datetime.now(UTC)
        order = cls(
            customer_id=customer_id,
            items=[OrderItem(**item) for item in items_data],
            pre_discount_amount=pre_discount_amount,
            discount=discount,
            amount=pre_discount_amount - discount,
            shipping_address=ShippingAddress(**shipping_address),
            status=OrderStatus.PLACED.value,
            payment_method=payment_method,
            payment_confirmed=False,
            coupon_code=coupon_code,
            placed_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                payment_method=order.payment_method,
                item_count=len(order.items),
                pre_discount_amount=order.pre_discount_amount,
                discount=order.discount,
                amount=order.amount,
                coupon_code=order.coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def is_terminal(self):
        return self.current_status in TERMINAL_STATES

    def is_cancellable(self):
        return self.current_status in CANCELLABLE_STATES

    def owned_by(self, customer_id):
        return str(self.customer_id) == str(customer_id)

    def counts_against_coupon(self):
        """Whether this order has consumed its coupon from the ledger's point of view."""
        if not self.coupon_code:
            return False
        if self.payment_method == PaymentMethod.GATEWAY.value:
            return bool(self.payment_confirmed)
        return True

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus):
        current = self.current_status
        if current in TERMINAL_STATES:
            raise InvalidTransition(
                f"Order is {current.value} and can no longer change status",
                order_id=self.id,
                status=current.value,
            )
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot transition from {current.value} to {target.value}",
                order_id=self.id,
                status=current.value,
            )

    def transition_to(self, target_status, changed_by=Actor.ADMIN.value, reason=None):
        """Move to `target_status`. Returns the previous status value."""
        target = parse_status(target_status)
        self._assert_can_transition(target)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        if target == OrderStatus.CANCELLED:
            self.cancellation_reason = reason
            self.cancelled_by = changed_by

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                previous_status=previous,
                new_status=target.value,
                changed_by=changed_by,
                reason=reason,
                changed_at=now,
            )
        )
        return previous

    def cancel(self, reason, cancelled_by):
        """Cancel the order. Allowed only from `Order placed` or `Packing`."""
        if not self.is_cancellable():
            allowed = ", ".join(sorted(s.value for s in CANCELLABLE_STATES))
            raise InvalidTransition(
                f"Cannot cancel order in {self.status} state. Cancellation is only allowed from: {allowed}",
                order_id=self.id,
                status=self.status,
            )
        return self.transition_to(OrderStatus.CANCELLED, changed_by=cancelled_by, reason=reason)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def bind_gateway_order(self, gateway_order_id):
        """Tie a gateway checkout session to this order."""
        if self.payment_method != PaymentMethod.GATEWAY.value:
            raise WrongMethod("Only gateway orders carry a gateway session", order_id=self.id)
        self.gateway_order_id = gateway_order_id

    def confirm_payment(self, gateway_payment_id=None):
        """Mark the order paid. Returns False, with no event, if it already was."""
        if self.payment_confirmed:
            return False

        now = datetime.now(UTC)
        self.payment_confirmed = True
        self.payment_confirmed_at = now
        self.updated_at = now
        if gateway_payment_id:
            self.gateway_payment_id = gateway_payment_id

        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                payment_method=self.payment_method,
                amount=self.amount,
                gateway_order_id=self.gateway_order_id,
                gateway_payment_id=self.gateway_payment_id,
                purchase_confirmation=self.payment_method == PaymentMethod.GATEWAY.value,
                confirmed_at=now,
            )
        )
        return True


@checkout.repository(part_of=Order)
class OrderRepository:
    """Order storage. Post-placement writes go through `compare_and_set`."""

    def find(self, order_id) -> Order | None:
        try:
            return self.get(order_id)
        except ObjectNotFoundError:
            return None

    def find_by_gateway_order(self, gateway_order_id) -> Order | None:
        items = self._dao.query.filter(gateway_order_id=gateway_order_id).all().items
        return items[0] if items else None

    def for_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).order_by("-placed_at").all().items

    def newest_first(self) -> list[Order]:
        return self._dao.query.order_by("-placed_at").all().items

    def compare_and_set(self, order_id, expected: dict, changes: dict) -> bool:
        """Apply `changes` only if the stored order still matches `expected`.

        A single conditional update at the storage layer. Returns False when
        the order was changed by someone else (or no longer matches).
        """
        criteria = self._dao.query.filter(id=str(order_id), **expected)._criteria
        return self._dao._update_all(criteria, **changes) == 1

    def claim_coupon(self, order_id) -> bool:
        """Mark the order's coupon as redeemed. Only one caller ever wins the claim."""
        return self.compare_and_set(order_id, expected={"coupon_redeemed": False}, changes={"coupon_redeemed": True})

    def release_coupon(self, order_id) -> bool:
        return self.compare_and_set(order_id, expected={"coupon_redeemed": True}, changes={"coupon_redeemed": False})

    def awaiting_redemption(self, coupon_code) -> list[Order]:
        """Orders that consumed `coupon_code` but have no redemption recorded against them."""
        query = self._dao.query.filter(coupon_code=coupon_code, coupon_redeemed=False)
        items = query.order_by("placed_at").all().items
        return [order for order in items if order.counts_against_coupon()]
