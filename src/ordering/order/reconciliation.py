"""Payment reconciliation — gateway notifications and return redirects.

The gateway may deliver a notification several times, late, or never, and
the shopper's browser may come back before, after, or without it. Both entry
points therefore read the current payment status and short-circuit before
doing anything when the outcome has already been applied.

``handle_notification`` never raises: the gateway needs a synchronous
acknowledgement, so every failure becomes a ``NotificationResult``.
"""

import os
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

import structlog
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import StockRestoreError
from ordering.order.order import Actor, Order
from ordering.order.restock import cancel_and_restock
from payments.gateway import GatewayError, get_gateway
from payments.gateway.notification import GatewayNotification, parse_notification

logger = structlog.get_logger(__name__)


class NotificationOutcome(Enum):
    PAID = "paid"
    CANCELLED = "cancelled"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    outcome: NotificationOutcome
    message: str
    order_id: str | None = None


@dataclass(frozen=True)
class ReturnResult:
    redirect_url: str
    payment: str
    order_id: str | None = None


def _resolve_order(notification: GatewayNotification) -> Order | None:
    """Find the order by the reference we embedded, falling back to its code."""
    repo = current_domain.repository_for(Order)
    if notification.order_ref:
        try:
            return repo.get(notification.order_ref)
        except ObjectNotFoundError:
            logger.info("Embedded order reference not found", order_ref=notification.order_ref)
    return repo.find_by_code(notification.order_code)


def _apply(order: Order, notification: GatewayNotification) -> NotificationResult:
    order_id = str(order.id)

    if order.is_paid:
        return NotificationResult(True, NotificationOutcome.DUPLICATE, "Payment already recorded", order_id)

    if notification.succeeded:
        if order.is_cancelled:
            logger.warning("Payment received for a cancelled order", order_id=order_id)
        if notification.amount is not None and notification.amount != order.total:
            logger.warning(
                "Notification amount differs from order total",
                order_id=order_id,
                amount=notification.amount,
                total=order.total,
            )
        order.mark_paid(transaction_id=notification.transaction_id)
        current_domain.repository_for(Order).add(order)
        logger.info("Payment confirmed", order_id=order_id, transaction_id=notification.transaction_id)
        return NotificationResult(True, NotificationOutcome.PAID, "Payment recorded", order_id)

    if order.is_cancelled:
        return NotificationResult(True, NotificationOutcome.DUPLICATE, "Order already cancelled", order_id)

    reason = f"Payment failed: {notification.message or f'result code {notification.result_code}'}"
    cancel_and_restock(order, reason=reason, cancelled_by=Actor.SYSTEM.value)
    return NotificationResult(True, NotificationOutcome.CANCELLED, "Order cancelled after failed payment", order_id)


def handle_notification(payload: dict) -> NotificationResult:
    """Verify and apply one gateway notification."""
    if not get_gateway().verify_notification_signature(payload):
        logger.warning("Rejected notification with invalid signature", order_code=_safe_get(payload, "orderId"))
        return NotificationResult(False, NotificationOutcome.REJECTED, "Invalid signature")

    try:
        notification = parse_notification(payload)
    except GatewayError as exc:
        logger.warning("Rejected malformed notification", error=exc.message)
        return NotificationResult(False, NotificationOutcome.REJECTED, exc.message)

    order = _resolve_order(notification)
    if order is None:
        logger.warning("Notification for unknown order", order_code=notification.order_code)
        return NotificationResult(False, NotificationOutcome.NOT_FOUND, "Order not found")

    try:
        return _apply(order, notification)
    except ExpectedVersionError:
        # A concurrent delivery of the same notification won the write
        logger.info("Concurrent notification already applied", order_id=str(order.id))
        return NotificationResult(True, NotificationOutcome.DUPLICATE, "Notification already applied", str(order.id))
    except (ValidationError, InvalidOperationError, StockRestoreError) as exc:
        logger.error("Failed to apply notification", order_id=str(order.id), error=str(exc))
        return NotificationResult(False, NotificationOutcome.FAILED, str(exc), str(order.id))


def _safe_get(payload, key):
    return payload.get(key) if isinstance(payload, dict) else None


# ---------------------------------------------------------------------------
# Browser return
# ---------------------------------------------------------------------------
def _client_url() -> str:
    return os.environ.get("CLIENT_URL", "http://localhost:5173").rstrip("/")


def _redirect(order_id: str | None, payment: str) -> ReturnResult:
    if order_id is None:
        url = f"{_client_url()}/orders?{urlencode({'payment': payment})}"
    else:
        url = f"{_client_url()}/orders/{order_id}?{urlencode({'payment': payment})}"
    return ReturnResult(redirect_url=url, payment=payment, order_id=order_id)


def handle_return(params: dict) -> ReturnResult:
    """Work out where to send the shopper after the gateway page.

    Only the success path is applied here, and only when the signature
    verifies; failures are left to the notification path, which is the
    authoritative one.
    """
    try:
        notification = parse_notification(params)
    except GatewayError:
        return _redirect(None, "unknown")

    order = _resolve_order(notification)
    if order is None:
        return _redirect(None, "unknown")

    order_id = str(order.id)
    if order.is_paid:
        return _redirect(order_id, "success")

    if not notification.succeeded:
        return _redirect(order_id, "failed")

    if not get_gateway().verify_notification_signature(params):
        logger.warning("Return redirect with invalid signature", order_id=order_id)
        return _redirect(order_id, "pending")

    try:
        order.mark_paid(transaction_id=notification.transaction_id)
        current_domain.repository_for(Order).add(order)
        logger.info("Payment confirmed via return redirect", order_id=order_id)
    except ExpectedVersionError:
        logger.info("Return redirect raced the notification", order_id=order_id)
    except (ValidationError, InvalidOperationError) as exc:
        logger.warning("Could not apply payment from return redirect", order_id=order_id, error=str(exc))
        return _redirect(order_id, "pending")

    return _redirect(order_id, "success")
