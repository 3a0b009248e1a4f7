"""Order cancellation by a customer or an administrator."""

import structlog
from protean.utils.globals import current_domain

from ordering.order.access import Caller, ensure_owner_or_admin
from ordering.order.order import Actor, Order
from ordering.order.restock import cancel_and_restock

logger = structlog.get_logger(__name__)


def cancel_order(order_id, caller: Caller, reason: str | None = None) -> Order:
    """Cancel a Pending or Confirmed order and return its stock.

    Customers may only cancel their own orders.
    """
    order = current_domain.repository_for(Order).get(order_id)
    ensure_owner_or_admin(order, caller)

    actor = Actor.ADMIN if caller.is_admin else Actor.CUSTOMER
    return cancel_and_restock(
        order,
        reason=reason or f"Cancelled by {actor.value.lower()}",
        cancelled_by=actor.value,
    )
