"""Cart aggregate: one active cart per customer.

Internally the cart is a typed mapping of `CartKey(product_id, size)` to a
quantity, stored as `CartLine` entities. Clients exchange it in the nested
wire shape `{product_id: {size: quantity}}`; `to_wire` and `from_wire` are
the only places that shape is built or read.
"""

from datetime import UTC, datetime
from typing import NamedTuple

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from checkout.domain import checkout

DEFAULT_SIZE = "N/A"


class CartKey(NamedTuple):
    product_id: str
    size: str = DEFAULT_SIZE


def _key(product_id, size=None) -> CartKey:
    if not product_id:
        raise ValidationError({"product_id": ["Product is required"]})
    return CartKey(str(product_id), str(size) if size else DEFAULT_SIZE)


def _ensure_quantity(quantity, allow_zero=False) -> int:
    floor = 0 if allow_zero else 1
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < floor:
        raise ValidationError({"quantity": [f"Quantity must be a whole number of at least {floor}"]})
    return quantity


@checkout.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    size = String(max_length=50, default=DEFAULT_SIZE)
    quantity = Integer(required=True, min_value=1)

    @property
    def key(self) -> CartKey:
        return CartKey(str(self.product_id), self.size or DEFAULT_SIZE)


@checkout.aggregate
class Cart:
    customer_id = Identifier(required=True, unique=True)
    lines = HasMany(CartLine)
    updated_at = DateTime()

    @classmethod
    def start(cls, customer_id):
        return cls(customer_id=customer_id, updated_at=datetime.now(UTC))

    @classmethod
    def from_wire(cls, customer_id, data: dict | None):
        """Build a cart from the nested `{product_id: {size: quantity}}` mapping."""
        cart = cls.start(customer_id)
        for product_id, sizes in (data or {}).items():
            if not isinstance(sizes, dict):
                raise ValidationError({"cart": [f"Sizes for product {product_id} must be a mapping"]})
            for size, quantity in sizes.items():
                cart.set_quantity(product_id, size, quantity)
        return cart

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def _line(self, key: CartKey):
        return next((line for line in self.lines if line.key == key), None)

    def quantity_of(self, product_id, size=None) -> int:
        line = self._line(_key(product_id, size))
        return line.quantity if line else 0

    def as_mapping(self) -> dict[CartKey, int]:
        return {line.key: line.quantity for line in self.lines}

    def to_wire(self) -> dict:
        wire: dict[str, dict[str, int]] = {}
        for key, quantity in self.as_mapping().items():
            wire.setdefault(key.product_id, {})[key.size] = quantity
        return wire

    def is_empty(self) -> bool:
        return not self.lines

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add(self, product_id, size=None, quantity=1):
        """Add `quantity` of a product variant, merging into an existing line."""
        key = _key(product_id, size)
        quantity = _ensure_quantity(quantity)

        existing = self._line(key)
        if existing:
            existing.quantity += quantity
        else:
            self.add_lines(CartLine(product_id=key.product_id, size=key.size, quantity=quantity))
        self.updated_at = datetime.now(UTC)

    def set_quantity(self, product_id, size, quantity):
        """Set the quantity of a line. Zero removes it."""
        key = _key(product_id, size)
        quantity = _ensure_quantity(quantity, allow_zero=True)

        existing = self._line(key)
        if quantity == 0:
            if existing:
                self.remove_lines(existing)
        elif existing:
            existing.quantity = quantity
        else:
            self.add_lines(CartLine(product_id=key.product_id, size=key.size, quantity=quantity))
        self.updated_at = datetime.now(UTC)

    def remove(self, product_id, size=None):
        """Remove one size of a product, or every size when `size` is None."""
        if size is None:
            doomed = [line for line in self.lines if str(line.product_id) == str(product_id)]
        else:
            line = self._line(_key(product_id, size))
            doomed = [line] if line else []

        for line in doomed:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

    def clear(self):
        for line in list(self.lines):
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)


@checkout.repository(part_of=Cart)
class CartRepository:
    def for_customer(self, customer_id) -> Cart | None:
        items = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return items[0] if items else None

    def for_customer_or_new(self, customer_id) -> Cart:
        return self.for_customer(customer_id) or Cart.start(customer_id)
