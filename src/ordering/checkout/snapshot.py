"""Checkout snapshot — resolve what would be ordered, at today's prices.

``resolve_order_candidates`` backs both the preview endpoint and the first
step of order placement, so preview and checkout always agree on pricing and
stock. Names and prices are read from the catalog at resolution time; the
price a product had when it was added to the cart is irrelevant.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalog
from ordering.cart.cart import ShoppingCart
from ordering.errors import EmptySelectionError, OutOfStockError
from ordering.order.order import CheckoutSource

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestedLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class CheckoutRequest:
    """What the customer asked to check out.

    ``lines`` is only used for buy-now; ``cart_item_ids`` optionally narrows
    a cart checkout to a subset of the selected lines.
    """

    source: str = CheckoutSource.CART.value
    lines: tuple[RequestedLine, ...] = ()
    cart_item_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class CandidateLine:
    product_id: str
    name: str
    unit_price: int
    quantity: int
    image: str | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def as_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "image": self.image,
        }


@dataclass(frozen=True)
class CheckoutSnapshot:
    lines: list[CandidateLine] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(line.line_total for line in self.lines)


def _merge(requested):
    """Collapse repeated products into one line, preserving first-seen order."""
    merged: dict[str, int] = {}
    for line in requested:
        merged[str(line.product_id)] = merged.get(str(line.product_id), 0) + line.quantity
    return [RequestedLine(product_id=pid, quantity=qty) for pid, qty in merged.items()]


def _requested_from_cart(customer_id, cart_item_ids):
    cart = current_domain.repository_for(ShoppingCart).for_customer(customer_id)
    if cart is None or not cart.items:
        raise EmptySelectionError({"cart": ["Your cart is empty"]})

    selected = cart.selected_items(cart_item_ids)
    if not selected:
        raise EmptySelectionError({"cart": ["No cart items are selected for checkout"]})

    return [RequestedLine(product_id=str(item.product_id), quantity=item.quantity) for item in selected]


def _price(requested):
    catalog = get_catalog()
    lines = []
    for line in requested:
        product = catalog.get_product(line.product_id)
        if product.stock < line.quantity:
            logger.info(
                "Checkout rejected for insufficient stock",
                product_id=line.product_id,
                requested=line.quantity,
                available=product.stock,
            )
            raise OutOfStockError(
                product_id=line.product_id,
                name=product.name,
                requested=line.quantity,
                available=product.stock,
            )
        lines.append(
            CandidateLine(
                product_id=product.product_id,
                name=product.name,
                unit_price=product.price,
                quantity=line.quantity,
                image=product.image,
            )
        )
    return lines


def resolve_order_candidates(customer_id, request: CheckoutRequest) -> CheckoutSnapshot:
    """Resolve a checkout request into priced, stock-checked lines.

    Raises:
        ValidationError: a buy-now request without lines, or a bad quantity.
        EmptySelectionError: nothing in the cart qualifies.
        ObjectNotFoundError: a requested product does not exist.
        OutOfStockError: a line asks for more than the current stock.
    """
    source = CheckoutSource(request.source)

    if source == CheckoutSource.BUY_NOW:
        if not request.lines:
            raise ValidationError({"items": ["Buy now requires at least one item"]})
        if any(line.quantity < 1 for line in request.lines):
            raise ValidationError({"items": ["Quantity must be at least 1"]})
        requested = _merge(request.lines)
    else:
        requested = _merge(_requested_from_cart(customer_id, request.cart_item_ids))

    return CheckoutSnapshot(lines=_price(requested))
