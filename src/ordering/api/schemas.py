"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates. Amounts are integers in the
minor currency unit; timestamps are epoch milliseconds.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class SourceChoice(str, Enum):
    CART = "cart"
    BUY_NOW = "buy_now"


class PaymentMethodChoice(str, Enum):
    COD = "cod"
    MOMO = "momo"


class ShippingAddressSchema(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(pattern=r"^\d{10,11}$")
    province: str = Field(min_length=1, max_length=100)
    district: str = Field(min_length=1, max_length=100)
    ward: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=1, max_length=255)
    note: str | None = Field(default=None, max_length=500)


class BuyNowItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class OrderLineSchema(BaseModel):
    product_id: str
    name: str
    unit_price: int
    quantity: int
    image: str | None = None
    line_total: int


# ---------------------------------------------------------------------------
# Checkout Request Schemas
# ---------------------------------------------------------------------------
class PreviewOrderRequest(BaseModel):
    source: SourceChoice = SourceChoice.CART
    items: list[BuyNowItemSchema] = Field(default_factory=list)
    cart_item_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def buy_now_needs_items(self):
        if self.source == SourceChoice.BUY_NOW and not self.items:
            raise ValueError("items are required when source is buy_now")
        return self


class CreateOrderRequest(PreviewOrderRequest):
    payment_method: PaymentMethodChoice
    shipping_address: ShippingAddressSchema
    note: str | None = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "source": "buy_now",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "payment_method": "momo",
                    "shipping_address": {
                        "full_name": "Nguyen Van A",
                        "phone": "0901234567",
                        "province": "Ho Chi Minh",
                        "district": "District 1",
                        "ward": "Ben Nghe",
                        "street": "1 Le Loi",
                    },
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = Field(default=None, max_length=500)


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: str


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class SelectCartItemsRequest(BaseModel):
    item_ids: list[str] = Field(min_length=1)
    selected: bool = True


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartItemIdResponse(BaseModel):
    item_id: str


class PreviewResponse(BaseModel):
    items: list[OrderLineSchema]
    total: int


class OrderSummaryResponse(BaseModel):
    """List projection: no shipping address."""

    order_id: str
    order_code: str
    customer_id: str
    status: str
    payment_status: str
    payment_method: str
    total: int
    items: list[OrderLineSchema]
    created_at: int | None = None
    updated_at: int | None = None


class OrderDetailResponse(OrderSummaryResponse):
    source: str
    shipping_address: ShippingAddressSchema | None = None
    note: str | None = None
    payment_url: str | None = None
    payment_qr_code_url: str | None = None
    payment_transaction_id: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    pending_at: int | None = None
    confirmed_at: int | None = None
    shipping_at: int | None = None
    delivered_at: int | None = None
    cancelled_at: int | None = None
    paid_at: int | None = None


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    pagination: PaginationSchema


class NotificationResponse(BaseModel):
    success: bool
    outcome: str
    message: str
    order_id: str | None = None


class StaleOrderSweepRequest(BaseModel):
    as_of: int | None = None  # epoch ms, defaults to now
    timeout_minutes: int | None = Field(default=None, ge=1)


class StaleOrderSweepResponse(BaseModel):
    cancelled: int
    failed: int
    total: int


class CartItemSchema(BaseModel):
    item_id: str
    product_id: str
    quantity: int
    selected: bool


class CartResponse(BaseModel):
    cart_id: str | None = None
    customer_id: str
    items: list[CartItemSchema]
