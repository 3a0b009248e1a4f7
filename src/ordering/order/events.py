"""Domain events for the Order aggregate.

All events are versioned, immutable facts representing state changes.
Timestamps are epoch milliseconds.
"""

from protean.fields import Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A new order was created after its stock was reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_code = String(required=True)
    customer_id = Identifier(required=True)
    source = String(required=True)
    payment_method = String(required=True)
    items = Text(required=True)  # JSON: list of line dicts
    total = Integer(required=True)
    placed_at = Integer(required=True)


@ordering.event(part_of="Order")
class PaymentLinkAttached:
    """The gateway issued a payment URL for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    payment_url = Text(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved one step along the fulfillment path."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_at = Integer(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_at = Integer(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """The gateway (or an administrator) confirmed payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String()
    amount = Integer(required=True)
    paid_at = Integer(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_at = Integer(required=True)
