"""Order placement — the checkout pipeline.

    1. resolve priced, stock-checked lines (no side effects)
    2. reserve stock line by line with conditional decrements
    3. persist the order as Pending/Unpaid
    4. for gateway payments, obtain and attach a payment link
    5. for cart checkouts, drop the ordered lines from the cart

A failure before step 2 completes leaves nothing behind. A failure after it
leaves a Cancelled order and every reservation released. Stock is always
taken before the order row exists, so a lost race can never produce an
order-bearing oversell.
"""

from functools import partial

import structlog
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalog
from ordering.cart.cart import ShoppingCart
from ordering.checkout.compensation import Compensations
from ordering.checkout.snapshot import CheckoutRequest, CheckoutSnapshot, resolve_order_candidates
from ordering.errors import OutOfStockError
from ordering.order.order import Actor, CheckoutSource, Order, PaymentMethod, generate_order_code
from payments.gateway import callback_urls, get_gateway
from payments.gateway.notification import encode_order_reference

logger = structlog.get_logger(__name__)

_ORDER_CODE_ATTEMPTS = 5


def preview_order(customer_id, request: CheckoutRequest) -> CheckoutSnapshot:
    """Read-only pricing of a checkout request."""
    return resolve_order_candidates(customer_id, request)


# ---------------------------------------------------------------------------
# Compensating actions
# ---------------------------------------------------------------------------
def _release_stock(product_id, quantity, reason):
    get_catalog().adjust_stock(product_id, quantity)
    logger.info("Reservation released", product_id=product_id, quantity=quantity, reason=reason)


def _cancel_placed_order(order_id, reason):
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    if order.is_cancelled:
        return
    order.cancel(reason=reason, cancelled_by=Actor.SYSTEM.value)
    repo.add(order)


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------
def _reserve(snapshot: CheckoutSnapshot, compensations: Compensations) -> None:
    catalog = get_catalog()
    for line in snapshot.lines:
        if not catalog.adjust_stock(line.product_id, -line.quantity):
            raise OutOfStockError(product_id=line.product_id, name=line.name, requested=line.quantity)
        compensations.push(
            f"release:{line.product_id}",
            partial(_release_stock, line.product_id, line.quantity),
        )


def _unique_order_code(repo) -> str:
    for _ in range(_ORDER_CODE_ATTEMPTS):
        code = generate_order_code()
        if repo.find_by_code(code) is None:
            return code
    raise RuntimeError("Could not allocate a unique order code")


def _attach_payment_link(order: Order) -> None:
    link = get_gateway().build_payment_request(
        order_code=order.order_code,
        amount=order.total,
        callback_urls=callback_urls(),
        order_info=f"Payment for order {order.order_code}",
        extra_data=encode_order_reference(str(order.id)),
    )
    order.attach_payment_link(
        payment_url=link.payment_url,
        transaction_id=link.transaction_id,
        qr_code_url=link.qr_code_url,
    )


def _clear_cart_lines(customer_id, order: Order) -> None:
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.for_customer(customer_id)
    if cart is None:
        return
    cart.remove_products([pid for pid, _ in order.line_quantities()], order_id=str(order.id))
    repo.add(cart)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def place_order(
    customer_id,
    request: CheckoutRequest,
    payment_method: str,
    shipping_address: dict | None = None,
    note: str | None = None,
) -> Order:
    """Run the checkout pipeline and return the persisted order.

    Raises whatever step failed (OutOfStockError, GatewayError, ...) after
    compensation has run.
    """
    method = PaymentMethod(payment_method)
    snapshot = resolve_order_candidates(customer_id, request)

    compensations = Compensations()
    try:
        _reserve(snapshot, compensations)

        repo = current_domain.repository_for(Order)
        order = Order.place(
            customer_id=customer_id,
            lines=[line.as_dict() for line in snapshot.lines],
            payment_method=method.value,
            shipping_address=shipping_address,
            source=CheckoutSource(request.source).value,
            note=note,
            order_code=_unique_order_code(repo),
        )
        repo.add(order)
        compensations.push(f"cancel:{order.id}", partial(_cancel_placed_order, str(order.id)))

        if method == PaymentMethod.GATEWAY:
            _attach_payment_link(order)
            repo.add(order)

        if CheckoutSource(request.source) == CheckoutSource.CART:
            _clear_cart_lines(customer_id, order)
    except Exception as exc:
        reason = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        logger.warning(
            "Checkout failed, compensating",
            customer_id=str(customer_id),
            reason=reason,
            steps=len(compensations),
        )
        failed = compensations.run(reason)
        if failed:
            logger.error("Checkout compensation incomplete", customer_id=str(customer_id), failed_steps=failed)
        raise

    compensations.discard()
    logger.info(
        "Order placed",
        order_id=str(order.id),
        order_code=order.order_code,
        customer_id=str(customer_id),
        total=order.total,
        payment_method=order.payment_method,
    )
    return order
