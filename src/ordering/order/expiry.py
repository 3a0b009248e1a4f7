"""Stale-order sweep — cancel gateway orders that were never paid.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via the maintenance API endpoint or ``manage.py
cancel-stale-orders``. Each stale order is cancelled and restocked on its
own, so one bad order never blocks the rest of the sweep.
"""

import os
from dataclasses import dataclass

import structlog
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import StockRestoreError
from ordering.order.order import Actor, Order
from ordering.order.restock import cancel_and_restock
from ordering.utils.clock import now_ms

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MINUTES = 40


@dataclass(frozen=True)
class SweepResult:
    cancelled: int
    failed: int
    total: int


def stale_order_timeout_minutes() -> int:
    return int(os.environ.get("STALE_ORDER_TIMEOUT_MINUTES", DEFAULT_TIMEOUT_MINUTES))


def cancel_stale_orders(as_of_ms: int | None = None, timeout_minutes: int | None = None) -> SweepResult:
    """Cancel Pending/Unpaid gateway orders older than the timeout."""
    as_of_ms = as_of_ms if as_of_ms is not None else now_ms()
    timeout_minutes = timeout_minutes if timeout_minutes is not None else stale_order_timeout_minutes()
    cutoff = as_of_ms - timeout_minutes * 60 * 1000

    logger.info("Checking for stale orders", cutoff=cutoff, timeout_minutes=timeout_minutes)

    stale = current_domain.repository_for(Order).find_stale_gateway_orders(cutoff)
    if not stale:
        logger.info("No stale orders found")
        return SweepResult(cancelled=0, failed=0, total=0)

    cancelled = 0
    failed = 0
    for order in stale:
        try:
            cancel_and_restock(
                order,
                reason=f"Payment not received within {timeout_minutes} minutes",
                cancelled_by=Actor.SYSTEM.value,
            )
            cancelled += 1
        except (ValidationError, InvalidOperationError, ExpectedVersionError, StockRestoreError) as exc:
            failed += 1
            logger.warning(
                "Failed to cancel stale order",
                order_id=str(order.id),
                order_code=order.order_code,
                error=str(exc),
            )

    logger.info("Stale order sweep finished", cancelled=cancelled, failed=failed, total=len(stale))
    return SweepResult(cancelled=cancelled, failed=failed, total=len(stale))
