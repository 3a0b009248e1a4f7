"""Cart item management — commands and handler.

Carts are addressed by customer: the first AddToCart for a customer creates
their cart.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, Integer, Text
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalog
from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class SelectCartItems:
    customer_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of cart item ids
    selected = Boolean(default=True)


def _cart_for(customer_id):
    cart = current_domain.repository_for(ShoppingCart).for_customer(customer_id)
    if cart is None:
        raise ObjectNotFoundError({"cart": [f"Cart for customer {customer_id} not found"]})
    return cart


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        # Unknown products never reach the cart
        get_catalog().get_product(str(command.product_id))

        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.for_customer(command.customer_id) or ShoppingCart.create(customer_id=command.customer_id)
        item_id = cart.add_item(product_id=command.product_id, quantity=command.quantity)
        repo.add(cart)
        return item_id

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = _cart_for(command.customer_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = _cart_for(command.customer_id)
        cart.remove_item(item_id=command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(SelectCartItems)
    def select_cart_items(self, command):
        cart = _cart_for(command.customer_id)
        item_ids = json.loads(command.item_ids) if isinstance(command.item_ids, str) else command.item_ids
        cart.set_selection(item_ids=item_ids, selected=command.selected)
        current_domain.repository_for(ShoppingCart).add(cart)
