"""Tests for the Order aggregate: placement, totals and payment status."""

import json
import re

import pytest
from ordering.errors import InvalidTransitionError
from ordering.order.events import OrderPaid, OrderPlaced, PaymentLinkAttached, PaymentStatusChanged
from ordering.order.order import (
    CheckoutSource,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    generate_order_code,
)
from protean.exceptions import ValidationError

LINES = [
    {"product_id": "prod-a", "name": "Rice Cooker", "unit_price": 800_000, "quantity": 1, "image": "rc.png"},
    {"product_id": "prod-b", "name": "Chopsticks", "unit_price": 25_000, "quantity": 4, "image": None},
]


def _place(**overrides):
    kwargs = {
        "customer_id": "cust-001",
        "lines": LINES,
        "payment_method": PaymentMethod.GATEWAY.value,
        "shipping_address": {
            "full_name": "Tran Thi B",
            "phone": "0912345678",
            "province": "Ha Noi",
            "district": "Hoan Kiem",
            "ward": "Hang Bac",
            "street": "12 Hang Bac",
        },
    }
    kwargs.update(overrides)
    return Order.place(**kwargs)


class TestOrderCode:
    def test_format(self):
        assert re.fullmatch(r"ORD\d{12}", generate_order_code())


class TestPlacement:
    def test_new_order_is_pending_and_unpaid(self):
        order = _place()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.pending_at == order.created_at
        assert order.source == CheckoutSource.CART.value

    def test_total_is_sum_of_lines(self):
        order = _place()
        assert order.total == 800_000 + 4 * 25_000
        assert sum(item.line_total for item in order.items) == order.total

    def test_lines_are_snapshotted(self):
        order = _place()
        item = next(i for i in order.items if str(i.product_id) == "prod-a")
        assert item.name == "Rice Cooker"
        assert item.unit_price == 800_000
        assert item.image == "rc.png"

    def test_explicit_order_code_is_kept(self):
        assert _place(order_code="ORD000000000001").order_code == "ORD000000000001"

    def test_shipping_address_recorded(self):
        order = _place()
        assert order.shipping_address.full_name == "Tran Thi B"
        assert order.shipping_address.ward == "Hang Bac"

    def test_placed_event(self):
        order = _place()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.order_code == order.order_code
        assert event.total == order.total
        assert len(json.loads(event.items)) == 2

    def test_empty_lines_rejected(self):
        with pytest.raises(ValidationError):
            _place(lines=[])

    def test_extra_line_without_total_rejected(self):
        order = _place()
        with pytest.raises(ValidationError) as exc:
            order.add_items(OrderItem(product_id="prod-c", name="Spoon", unit_price=10_000, quantity=1))
        assert "sum of its lines" in str(exc.value)

    def test_line_quantities(self):
        assert sorted(_place().line_quantities()) == [("prod-a", 1), ("prod-b", 4)]


class TestOrderItem:
    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id="p", name="n", unit_price=1, quantity=0)

    def test_price_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id="p", name="n", unit_price=-1, quantity=1)


class TestPaymentLink:
    def test_attach_payment_link(self):
        order = _place()
        order._events.clear()
        order.attach_payment_link("https://pay.test/x", "req-1", qr_code_url="momo://qr")

        assert order.payment_url == "https://pay.test/x"
        assert order.payment_transaction_id == "req-1"
        assert order.payment_qr_code_url == "momo://qr"
        assert isinstance(order._events[-1], PaymentLinkAttached)


class TestMarkPaid:
    def test_unpaid_to_paid(self):
        order = _place()
        order._events.clear()
        order.mark_paid(transaction_id="4088878653")

        assert order.payment_status == PaymentStatus.PAID.value
        assert order.payment_transaction_id == "4088878653"
        assert order.paid_at is not None
        assert order.is_paid
        event = order._events[-1]
        assert isinstance(event, OrderPaid)
        assert event.amount == order.total

    def test_paid_cannot_be_paid_again(self):
        order = _place()
        order.mark_paid(transaction_id="t1")
        with pytest.raises(InvalidTransitionError):
            order.mark_paid(transaction_id="t2")
        assert order.payment_transaction_id == "t1"

    def test_paying_does_not_touch_order_status(self):
        order = _place()
        order.mark_paid(transaction_id="t1")
        assert order.status == OrderStatus.PENDING.value


class TestUpdatePaymentStatus:
    def test_unpaid_to_paid(self):
        order = _place(payment_method=PaymentMethod.CASH_ON_DELIVERY.value)
        order.update_payment_status(PaymentStatus.PAID.value)
        assert order.payment_status == PaymentStatus.PAID.value

    def test_paid_to_refunded(self):
        order = _place()
        order.mark_paid(transaction_id="t1")
        order._events.clear()
        order.update_payment_status(PaymentStatus.REFUNDED.value)

        assert order.payment_status == PaymentStatus.REFUNDED.value
        event = order._events[-1]
        assert isinstance(event, PaymentStatusChanged)
        assert (event.from_status, event.to_status) == ("Paid", "Refunded")

    @pytest.mark.parametrize(
        "steps,target",
        [
            ([], PaymentStatus.REFUNDED),
            ([], PaymentStatus.UNPAID),
            ([PaymentStatus.PAID], PaymentStatus.UNPAID),
            ([PaymentStatus.PAID, PaymentStatus.REFUNDED], PaymentStatus.PAID),
        ],
    )
    def test_invalid_changes(self, steps, target):
        order = _place()
        for step in steps:
            order.update_payment_status(step.value)
        before = order.payment_status
        with pytest.raises(InvalidTransitionError):
            order.update_payment_status(target.value)
        assert order.payment_status == before
