"""Stock compensation for orders that will never ship.

Every path that abandons an order (gateway failure during checkout, a failed
payment notification, customer or admin cancellation, the stale-order sweep)
goes through ``cancel_and_restock``. The cancellation is committed before any
stock is returned, so two racing compensations cannot both restock: the
loser fails to cancel an already Cancelled order.
"""

import structlog
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalog
from ordering.errors import StockRestoreError
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def restock(lines) -> None:
    """Return ``(product_id, quantity)`` pairs to stock.

    Every line is attempted even if an earlier one fails; failures are then
    reported together as a StockRestoreError.
    """
    catalog = get_catalog()
    failed = []
    for product_id, quantity in lines:
        try:
            catalog.adjust_stock(product_id, quantity)
        except Exception:
            logger.exception("Failed to restore stock", product_id=product_id, quantity=quantity)
            failed.append(product_id)

    if failed:
        raise StockRestoreError(failed)


def cancel_and_restock(order: Order, reason: str, cancelled_by: str) -> Order:
    """Cancel ``order``, persist it, then put its lines back in stock."""
    order.cancel(reason=reason, cancelled_by=cancelled_by)
    current_domain.repository_for(Order).add(order)

    logger.info(
        "Order cancelled",
        order_id=str(order.id),
        order_code=order.order_code,
        reason=reason,
        cancelled_by=cancelled_by,
    )

    restock(order.line_quantities())
    return order
