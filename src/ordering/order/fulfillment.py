"""Order fulfillment — status updates and the delivery side effect.

Reaching Delivered is the only trigger for bumping the catalog purchases
counter. That bump runs after the status change is committed, through a
dispatcher (FastAPI background tasks in the API), and its failure never
undoes the status change.
"""

from collections.abc import Callable

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalog
from ordering.domain import ordering
from ordering.order.access import Caller, Role
from ordering.order.cancellation import cancel_order
from ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class AdvanceOrderStatus:
    """Move an order forward along Pending → Confirmed → Shipping → Delivered."""

    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)


@ordering.command_handler(part_of=Order)
class AdvanceOrderStatusHandler:
    @handle(AdvanceOrderStatus)
    def advance_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        path = order.advance_to(command.status)
        repo.add(order)
        return [status.value for status in path]


def record_purchases(order_id, lines) -> None:
    """Best-effort purchases counter update for a delivered order."""
    catalog = get_catalog()
    for product_id, quantity in lines:
        try:
            catalog.increment_purchases(product_id, quantity)
        except Exception:
            logger.exception(
                "Failed to record purchases",
                order_id=str(order_id),
                product_id=product_id,
                quantity=quantity,
            )


def _run_inline(task: Callable, *args) -> None:
    task(*args)


def update_order_status(order_id, status, dispatch: Callable | None = None, reason: str | None = None) -> Order:
    """Administrative status update.

    Cancelled goes through the regular cancellation path (stock is
    returned); every other target is a forward move.
    """
    target = OrderStatus(status)
    if target == OrderStatus.CANCELLED:
        return cancel_order(order_id, Caller(customer_id="admin", role=Role.ADMIN), reason=reason)

    current_domain.process(AdvanceOrderStatus(order_id=str(order_id), status=target.value), asynchronous=False)
    order = current_domain.repository_for(Order).get(order_id)
    logger.info("Order status updated", order_id=str(order_id), status=order.status)

    if target == OrderStatus.DELIVERED:
        (dispatch or _run_inline)(record_purchases, str(order.id), order.line_quantities())

    return order
