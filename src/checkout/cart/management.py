"""Cart management: commands and handler.

Each handler loads the customer's cart (starting one on first use),
applies the change and returns the cart in wire format.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from checkout.cart.cart import Cart
from checkout.domain import checkout


@checkout.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String(max_length=50)
    quantity = Integer(default=1, min_value=1)


@checkout.command(part_of="Cart")
class UpdateCartLine:
    """Set a line's quantity. Zero removes the line."""

    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String(max_length=50)
    quantity = Integer(required=True, min_value=0)


@checkout.command(part_of="Cart")
class RemoveFromCart:
    """Remove one size of a product, or the whole product when no size is given."""

    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String(max_length=50)


@checkout.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@checkout.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer_or_new(command.customer_id)
        cart.add(command.product_id, command.size, command.quantity)
        repo.add(cart)
        return cart.to_wire()

    @handle(UpdateCartLine)
    def update_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer_or_new(command.customer_id)
        cart.set_quantity(command.product_id, command.size, command.quantity)
        repo.add(cart)
        return cart.to_wire()

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)
        if cart is None:
            return {}
        cart.remove(command.product_id, command.size)
        repo.add(cart)
        return cart.to_wire()

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)
        if cart is None:
            return {}
        cart.clear()
        repo.add(cart)
        return {}


def cart_contents(customer_id) -> dict:
    """The customer's cart in wire format; empty when they have none yet."""
    cart = current_domain.repository_for(Cart).for_customer(customer_id)
    return cart.to_wire() if cart else {}
