"""Order aggregate — the durable record of a checkout.

The Order is a standard (not event sourced) aggregate. Line prices and names
are snapshotted at creation and never re-read from the catalog, and the total
is fixed to the sum of those lines.

State Machine:
    PENDING → CONFIRMED → SHIPPING → DELIVERED
    PENDING | CONFIRMED → CANCELLED (terminal)

Payment Status:
    UNPAID → PAID → REFUNDED
"""

import json
import random
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.errors import InvalidTransitionError
from ordering.order.events import (
    OrderCancelled,
    OrderPaid,
    OrderPlaced,
    OrderStatusChanged,
    PaymentLinkAttached,
    PaymentStatusChanged,
)
from ordering.utils.clock import now_ms


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPING = "Shipping"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    UNPAID = "Unpaid"
    PAID = "Paid"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "Cash_On_Delivery"
    GATEWAY = "Gateway"


class CheckoutSource(Enum):
    CART = "Cart"
    BUY_NOW = "Buy_Now"


class Actor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    ADMIN = "Admin"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPING, OrderStatus.CANCELLED},
    OrderStatus.SHIPPING: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.UNPAID: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}

# Status -> timestamp field stamped when the status is reached
_STATUS_TIMESTAMPS = {
    OrderStatus.PENDING: "pending_at",
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.SHIPPING: "shipping_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def transition_path(current: OrderStatus, target: OrderStatus) -> list[OrderStatus] | None:
    """Return the statuses walked to get from ``current`` to ``target``.

    Cancellation is only ever a direct step. Forward moves may span several
    steps (Confirmed → Delivered passes through Shipping). Returns None when
    ``target`` is not reachable.
    """
    if target in _VALID_TRANSITIONS[current]:
        return [target]
    if target == OrderStatus.CANCELLED:
        return None

    path = []
    state = current
    while True:
        forward = [s for s in _VALID_TRANSITIONS[state] if s != OrderStatus.CANCELLED]
        if not forward:
            return None
        state = forward[0]
        path.append(state)
        if state == target:
            return path


def generate_order_code() -> str:
    """``ORD`` + last 8 digits of the millisecond clock + 4 random digits."""
    return f"ORD{str(now_ms())[-8:]}{random.randint(0, 9999):04d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address captured at checkout time.

    Opaque to the order lifecycle; recorded once and only shown on the
    order detail read.
    """

    full_name = String(required=True, max_length=100)
    phone = String(required=True, max_length=11)
    province = String(required=True, max_length=100)
    district = String(required=True, max_length=100)
    ward = String(required=True, max_length=100)
    street = String(required=True, max_length=255)
    note = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line snapshot: what was bought, at which price."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    image = String(max_length=1024)

    @property
    def line_total(self):
        return self.unit_price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_code = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    source = String(choices=CheckoutSource, default=CheckoutSource.CART.value)
    payment_method = String(choices=PaymentMethod, required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.UNPAID.value)
    payment_url = Text()
    payment_qr_code_url = Text()
    payment_transaction_id = String(max_length=255)
    total = Integer(required=True, min_value=0)
    note = String(max_length=500)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=Actor)
    created_at = Integer()
    updated_at = Integer()
    pending_at = Integer()
    confirmed_at = Integer()
    shipping_at = Integer()
    delivered_at = Integer()
    cancelled_at = Integer()
    paid_at = Integer()

    @invariant.post
    def total_must_match_lines(self):
        if self.items and self.total != sum(item.line_total for item in self.items):
            raise ValidationError({"total": ["Order total must equal the sum of its lines"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        lines,
        payment_method,
        shipping_address=None,
        source=CheckoutSource.CART.value,
        note=None,
        order_code=None,
    ):
        """Create a Pending/Unpaid order from resolved checkout lines.

        Args:
            customer_id: The customer placing the order.
            lines: List of dicts with product_id, name, unit_price,
                   quantity and image.
            payment_method: A PaymentMethod value.
            shipping_address: Dict matching ShippingAddress fields.
        """
        if not lines:
            raise ValidationError({"items": ["An order needs at least one line"]})

        now = now_ms()
        total = sum(line["unit_price"] * line["quantity"] for line in lines)
        order = cls(
            order_code=order_code or generate_order_code(),
            customer_id=customer_id,
            items=[OrderItem(**line) for line in lines],
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            source=source,
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            total=total,
            note=note,
            created_at=now,
            updated_at=now,
            pending_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_code=order.order_code,
                customer_id=str(customer_id),
                source=source,
                payment_method=payment_method,
                items=json.dumps(lines),
                total=total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def _stamp(self, status, at):
        setattr(self, _STATUS_TIMESTAMPS[status], at)
        self.updated_at = at

    def advance_to(self, target_status):
        """Move forward along the fulfillment path, one step at a time.

        Every intermediate status is stamped and announced. Raises
        InvalidTransitionError if ``target_status`` is not reachable.
        """
        target = OrderStatus(target_status)
        if target == OrderStatus.CANCELLED:
            raise InvalidTransitionError({"status": ["Use cancel() to cancel an order"]})

        current = OrderStatus(self.status)
        path = transition_path(current, target)
        if path is None:
            raise InvalidTransitionError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        now = now_ms()
        for step in path:
            previous = OrderStatus(self.status)
            self.status = step.value
            self._stamp(step, now)
            self.raise_(
                OrderStatusChanged(
                    order_id=str(self.id),
                    from_status=previous.value,
                    to_status=step.value,
                    changed_at=now,
                )
            )
        return path

    def cancel(self, reason, cancelled_by):
        """Cancel the order. Only allowed from Pending or Confirmed."""
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidTransitionError({"status": [f"Cannot cancel an order in {current.value} state"]})

        now = now_ms()
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self._stamp(OrderStatus.CANCELLED, now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=current.value,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def attach_payment_link(self, payment_url, transaction_id, qr_code_url=None):
        self.payment_url = payment_url
        self.payment_transaction_id = transaction_id
        self.payment_qr_code_url = qr_code_url
        self.updated_at = now_ms()

        self.raise_(
            PaymentLinkAttached(
                order_id=str(self.id),
                transaction_id=transaction_id,
                payment_url=payment_url,
            )
        )

    def mark_paid(self, transaction_id=None):
        """Record gateway confirmation of payment. Unpaid → Paid only."""
        if PaymentStatus(self.payment_status) != PaymentStatus.UNPAID:
            raise InvalidTransitionError(
                {"payment_status": [f"Cannot mark a {self.payment_status} order as Paid"]}
            )

        now = now_ms()
        self.payment_status = PaymentStatus.PAID.value
        self.paid_at = now
        self.updated_at = now
        if transaction_id:
            self.payment_transaction_id = transaction_id

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                transaction_id=transaction_id,
                amount=self.total,
                paid_at=now,
            )
        )

    def update_payment_status(self, target_status):
        """Administrative payment status change (Unpaid → Paid → Refunded)."""
        target = PaymentStatus(target_status)
        current = PaymentStatus(self.payment_status)
        if target not in _PAYMENT_TRANSITIONS[current]:
            raise InvalidTransitionError(
                {"payment_status": [f"Cannot change payment status from {current.value} to {target.value}"]}
            )

        if target == PaymentStatus.PAID:
            self.mark_paid()
            return

        now = now_ms()
        self.payment_status = target.value
        self.updated_at = now
        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                from_status=current.value,
                to_status=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def is_cancelled(self):
        return self.status == OrderStatus.CANCELLED.value

    def line_quantities(self):
        """(product_id, quantity) pairs for every line."""
        return [(str(item.product_id), item.quantity) for item in self.items]
