"""Shopping Cart aggregate — one per customer, lines flagged for checkout.

The cart belongs to the storefront, not to the order pipeline: checkout only
reads its selected lines and, once an order exists, removes the lines that
were ordered.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, HasMany, Identifier, Integer

from ordering.cart.events import (
    CartItemAdded,
    CartItemRemoved,
    CartLinesCheckedOut,
    CartQuantityUpdated,
    CartSelectionChanged,
)
from ordering.domain import ordering
from ordering.utils.clock import now_ms


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    selected = Boolean(default=True)
    added_at = Integer()


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = Integer()
    updated_at = Integer()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = now_ms()
        return cls(customer_id=customer_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    def add_item(self, product_id, quantity):
        """Add a product (or increase its quantity if already present)."""
        existing = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        now = now_ms()

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(product_id=product_id, quantity=quantity, selected=True, added_at=now)
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                quantity=quantity,
            )
        )
        return item_id

    def update_item_quantity(self, item_id, new_quantity):
        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = now_ms()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = now_ms()
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def set_selection(self, item_ids, selected=True):
        """Flag (or unflag) items for checkout."""
        items = [self._find_item(item_id) for item_id in item_ids]
        for item in items:
            item.selected = selected
        self.updated_at = now_ms()

        self.raise_(
            CartSelectionChanged(
                cart_id=str(self.id),
                item_ids=json.dumps([str(i.id) for i in items]),
                selected=selected,
            )
        )

    # -------------------------------------------------------------------
    # Checkout support
    # -------------------------------------------------------------------
    def selected_items(self, item_ids=None):
        """Selected lines, optionally narrowed to ``item_ids``."""
        wanted = {str(i) for i in item_ids} if item_ids else None
        return [
            item for item in self.items if item.selected and (wanted is None or str(item.id) in wanted)
        ]

    def remove_products(self, product_ids, order_id):
        """Drop every line for ``product_ids`` after they were ordered."""
        targets = {str(p) for p in product_ids}
        removed = [item for item in self.items if str(item.product_id) in targets]
        if not removed:
            return

        for item in removed:
            self.remove_items(item)
        self.updated_at = now_ms()
        self.raise_(
            CartLinesCheckedOut(
                cart_id=str(self.id),
                order_id=str(order_id),
                product_ids=json.dumps(sorted(targets)),
            )
        )
