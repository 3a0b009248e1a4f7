"""FastAPI routes for the Ordering domain — checkout, orders, carts and payments."""

import json

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CartItemIdResponse,
    CartItemSchema,
    CartResponse,
    CreateOrderRequest,
    NotificationResponse,
    OrderDetailResponse,
    OrderLineSchema,
    OrderListResponse,
    OrderSummaryResponse,
    PaginationSchema,
    PaymentMethodChoice,
    PreviewOrderRequest,
    PreviewResponse,
    SelectCartItemsRequest,
    ShippingAddressSchema,
    SourceChoice,
    StaleOrderSweepRequest,
    StaleOrderSweepResponse,
    StatusResponse,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
    UpdatePaymentStatusRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart, RemoveFromCart, SelectCartItems, UpdateCartQuantity
from ordering.checkout.placement import place_order, preview_order
from ordering.checkout.snapshot import CheckoutRequest, RequestedLine
from ordering.order.access import Caller, Role, ensure_admin, ensure_owner_or_admin
from ordering.order.cancellation import cancel_order
from ordering.order.expiry import cancel_stale_orders
from ordering.order.fulfillment import update_order_status
from ordering.order.order import CheckoutSource, Order, OrderStatus, PaymentMethod, PaymentStatus
from ordering.order.payment import UpdatePaymentStatus
from ordering.order.reconciliation import handle_notification, handle_return

_SOURCES = {
    SourceChoice.CART: CheckoutSource.CART,
    SourceChoice.BUY_NOW: CheckoutSource.BUY_NOW,
}

_PAYMENT_METHODS = {
    PaymentMethodChoice.COD: PaymentMethod.CASH_ON_DELIVERY,
    PaymentMethodChoice.MOMO: PaymentMethod.GATEWAY,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _caller(customer_id: str, role: str) -> Caller:
    if not customer_id:
        raise HTTPException(status_code=401, detail="Missing X-Customer-Id header")
    try:
        return Caller(customer_id=customer_id, role=Role(role.lower()))
    except ValueError as exc:
        raise HTTPException(status_code=403, detail=f"Unknown role: {role}") from exc


def _parse_enum(enum_cls, value, field):
    for member in enum_cls:
        if member.value.lower() == str(value).lower():
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError({field: [f"Must be one of: {allowed}"]})


def _checkout_request(body: PreviewOrderRequest) -> CheckoutRequest:
    return CheckoutRequest(
        source=_SOURCES[body.source].value,
        lines=tuple(RequestedLine(product_id=i.product_id, quantity=i.quantity) for i in body.items),
        cart_item_ids=tuple(body.cart_item_ids),
    )


def _lines(order: Order) -> list[OrderLineSchema]:
    return [
        OrderLineSchema(
            product_id=str(item.product_id),
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            image=item.image,
            line_total=item.line_total,
        )
        for item in order.items
    ]


def _summary(order: Order) -> OrderSummaryResponse:
    return OrderSummaryResponse(
        order_id=str(order.id),
        order_code=order.order_code,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        total=order.total,
        items=_lines(order),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _detail(order: Order) -> OrderDetailResponse:
    address = order.shipping_address
    return OrderDetailResponse(
        **_summary(order).model_dump(),
        source=order.source,
        shipping_address=ShippingAddressSchema(
            full_name=address.full_name,
            phone=address.phone,
            province=address.province,
            district=address.district,
            ward=address.ward,
            street=address.street,
            note=address.note,
        )
        if address
        else None,
        note=order.note,
        payment_url=order.payment_url,
        payment_qr_code_url=order.payment_qr_code_url,
        payment_transaction_id=order.payment_transaction_id,
        cancellation_reason=order.cancellation_reason,
        cancelled_by=order.cancelled_by,
        pending_at=order.pending_at,
        confirmed_at=order.confirmed_at,
        shipping_at=order.shipping_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        paid_at=order.paid_at,
    )


def _listing(result) -> OrderListResponse:
    return OrderListResponse(
        orders=[_summary(order) for order in result.items],
        pagination=PaginationSchema(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/preview", response_model=PreviewResponse)
def preview(
    body: PreviewOrderRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> PreviewResponse:
    """Price a checkout without reserving anything."""
    caller = _caller(x_customer_id, x_role)
    snapshot = preview_order(caller.customer_id, _checkout_request(body))
    return PreviewResponse(
        items=[OrderLineSchema(**line.as_dict(), line_total=line.line_total) for line in snapshot.lines],
        total=snapshot.total,
    )


@order_router.post("", status_code=201, response_model=OrderDetailResponse)
def create_order(
    body: CreateOrderRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderDetailResponse:
    """Place an order.

    1. Resolve and price the lines
    2. Reserve stock
    3. Persist the order
    4. Request a payment link (gateway payments)
    5. Remove ordered lines from the cart (cart checkouts)
    """
    caller = _caller(x_customer_id, x_role)
    order = place_order(
        customer_id=caller.customer_id,
        request=_checkout_request(body),
        payment_method=_PAYMENT_METHODS[body.payment_method].value,
        shipping_address=body.shipping_address.model_dump(),
        note=body.note,
    )
    return _detail(order)


@order_router.get("", response_model=OrderListResponse)
def list_my_orders(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderListResponse:
    caller = _caller(x_customer_id, x_role)
    status_value = _parse_enum(OrderStatus, status, "status").value if status else None
    result = current_domain.repository_for(Order).list_for_customer(
        caller.customer_id, page=page, limit=limit, status=status_value
    )
    return _listing(result)


@order_router.get("/{order_id}", response_model=OrderDetailResponse)
def get_order(
    order_id: str,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderDetailResponse:
    caller = _caller(x_customer_id, x_role)
    order = current_domain.repository_for(Order).get(order_id)
    ensure_owner_or_admin(order, caller)
    return _detail(order)


@order_router.put("/{order_id}/cancel", response_model=OrderDetailResponse)
def cancel(
    order_id: str,
    body: CancelOrderRequest | None = None,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderDetailResponse:
    caller = _caller(x_customer_id, x_role)
    order = cancel_order(order_id, caller, reason=body.reason if body else None)
    return _detail(order)


# ---------------------------------------------------------------------------
# Admin Order Router
# ---------------------------------------------------------------------------
admin_order_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_order_router.get("", response_model=OrderListResponse)
def list_all_orders(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderListResponse:
    ensure_admin(_caller(x_customer_id, x_role))
    status_value = _parse_enum(OrderStatus, status, "status").value if status else None
    result = current_domain.repository_for(Order).list_all(page=page, limit=limit, status=status_value)
    return _listing(result)


@admin_order_router.put("/{order_id}/status", response_model=OrderDetailResponse)
def set_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    background_tasks: BackgroundTasks,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderDetailResponse:
    """Move an order forward or cancel it. Delivery bumps purchases in the background."""
    ensure_admin(_caller(x_customer_id, x_role))
    target = _parse_enum(OrderStatus, body.status, "status")
    order = update_order_status(order_id, target.value, dispatch=background_tasks.add_task, reason=body.reason)
    return _detail(order)


@admin_order_router.put("/{order_id}/payment-status", response_model=OrderDetailResponse)
def set_payment_status(
    order_id: str,
    body: UpdatePaymentStatusRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> OrderDetailResponse:
    ensure_admin(_caller(x_customer_id, x_role))
    target = _parse_enum(PaymentStatus, body.payment_status, "payment_status")
    current_domain.process(
        UpdatePaymentStatus(order_id=order_id, payment_status=target.value),
        asynchronous=False,
    )
    return _detail(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Payment Router (public, signature-gated)
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/notify", response_model=NotificationResponse)
async def payment_notification(request: Request) -> NotificationResponse:
    """Gateway server-to-server notification.

    Always answers 200 with a structured result so the gateway does not
    retry forever on payloads we will never accept. The body is read on the
    event loop; applying it touches the database and runs in the threadpool.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    result = await run_in_threadpool(handle_notification, payload if isinstance(payload, dict) else {})
    return NotificationResponse(
        success=result.success,
        outcome=result.outcome.value,
        message=result.message,
        order_id=result.order_id,
    )


@payment_router.get("/return")
def payment_return(request: Request) -> RedirectResponse:
    """Browser redirect target after the gateway payment page."""
    result = handle_return(dict(request.query_params))
    return RedirectResponse(url=result.redirect_url, status_code=302)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["carts"])


@cart_router.get("", response_model=CartResponse)
def view_cart(
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> CartResponse:
    caller = _caller(x_customer_id, x_role)
    cart = current_domain.repository_for(ShoppingCart).for_customer(caller.customer_id)
    if cart is None:
        return CartResponse(customer_id=caller.customer_id, items=[])
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id),
        items=[
            CartItemSchema(
                item_id=str(item.id),
                product_id=str(item.product_id),
                quantity=item.quantity,
                selected=item.selected,
            )
            for item in cart.items
        ],
    )


@cart_router.post("/items", status_code=201, response_model=CartItemIdResponse)
def add_cart_item(
    body: AddToCartRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> CartItemIdResponse:
    caller = _caller(x_customer_id, x_role)
    command = AddToCart(
        customer_id=caller.customer_id,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return CartItemIdResponse(item_id=item_id)


@cart_router.put("/items/{item_id}", response_model=StatusResponse)
def update_cart_item_quantity(
    item_id: str,
    body: UpdateCartQuantityRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> StatusResponse:
    caller = _caller(x_customer_id, x_role)
    command = UpdateCartQuantity(
        customer_id=caller.customer_id,
        item_id=item_id,
        new_quantity=body.new_quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/items/{item_id}", response_model=StatusResponse)
def remove_cart_item(
    item_id: str,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> StatusResponse:
    caller = _caller(x_customer_id, x_role)
    current_domain.process(RemoveFromCart(customer_id=caller.customer_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.put("/selection", response_model=StatusResponse)
def select_cart_items(
    body: SelectCartItemsRequest,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> StatusResponse:
    caller = _caller(x_customer_id, x_role)
    command = SelectCartItems(
        customer_id=caller.customer_id,
        item_ids=json.dumps(body.item_ids),
        selected=body.selected,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Maintenance: periodic background job endpoints
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/stale-orders", response_model=StaleOrderSweepResponse)
def sweep_stale_orders(
    body: StaleOrderSweepRequest | None = None,
    x_customer_id: str = Header(default=""),
    x_role: str = Header(default="customer"),
) -> StaleOrderSweepResponse:
    """Cancel gateway orders that stayed unpaid past the timeout.

    Designed to be called periodically by an external scheduler (e.g., hourly)
    holding an admin identity. Idempotent: already-cancelled orders are never
    picked up again.
    """
    ensure_admin(_caller(x_customer_id, x_role))
    result = cancel_stale_orders(
        as_of_ms=body.as_of if body else None,
        timeout_minutes=body.timeout_minutes if body else None,
    )
    return StaleOrderSweepResponse(cancelled=result.cancelled, failed=result.failed, total=result.total)
