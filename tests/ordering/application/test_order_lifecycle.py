"""Administrative status changes, cancellation and manual payment updates."""

import pytest
from catalogue.ledger import set_catalog
from catalogue.ledger.sql_adapter import SqlCatalog
from ordering.checkout.placement import place_order
from ordering.checkout.snapshot import CheckoutRequest, RequestedLine
from ordering.errors import ForbiddenError, InvalidTransitionError
from ordering.order.access import Caller, Role
from ordering.order.cancellation import cancel_order
from ordering.order.fulfillment import update_order_status
from ordering.order.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from ordering.order.payment import UpdatePaymentStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

ADMIN = Caller(customer_id="admin-1", role=Role.ADMIN)
OWNER = Caller(customer_id="cust-001")
STRANGER = Caller(customer_id="cust-999")


@pytest.fixture
def order(stocked, address):
    request = CheckoutRequest(
        source="Buy_Now",
        lines=(
            RequestedLine(product_id="prod-phone", quantity=2),
            RequestedLine(product_id="prod-case", quantity=1),
        ),
    )
    return place_order("cust-001", request, PaymentMethod.CASH_ON_DELIVERY.value, shipping_address=address)


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


class BrokenPurchasesCatalog(SqlCatalog):
    def increment_purchases(self, product_id, quantity):
        raise RuntimeError("purchases table locked")


class TestForwardMoves:
    def test_single_step(self, order):
        updated = update_order_status(order.id, OrderStatus.CONFIRMED.value)

        assert updated.status == OrderStatus.CONFIRMED.value
        assert updated.confirmed_at is not None

    def test_confirmed_to_delivered_walks_through_shipping(self, order, stocked):
        update_order_status(order.id, OrderStatus.CONFIRMED.value)

        updated = update_order_status(order.id, OrderStatus.DELIVERED.value)

        assert updated.status == OrderStatus.DELIVERED.value
        assert updated.shipping_at is not None
        assert updated.delivered_at is not None
        assert stocked.get_product("prod-phone").purchases == 2
        assert stocked.get_product("prod-case").purchases == 1

    def test_delivery_side_effect_is_dispatched(self, order, stocked):
        dispatched = []
        update_order_status(order.id, OrderStatus.CONFIRMED.value)
        update_order_status(order.id, OrderStatus.SHIPPING.value)

        update_order_status(
            order.id,
            OrderStatus.DELIVERED.value,
            dispatch=lambda task, *args: dispatched.append((task, args)),
        )

        assert len(dispatched) == 1
        assert stocked.get_product("prod-phone").purchases == 0
        task, args = dispatched[0]
        task(*args)
        assert stocked.get_product("prod-phone").purchases == 2

    def test_purchases_failure_keeps_delivered(self, order, stocked):
        set_catalog(BrokenPurchasesCatalog(stocked.engine))
        update_order_status(order.id, OrderStatus.CONFIRMED.value)

        updated = update_order_status(order.id, OrderStatus.DELIVERED.value)

        assert updated.status == OrderStatus.DELIVERED.value
        assert _reload(order).status == OrderStatus.DELIVERED.value

    def test_backwards_move_rejected(self, order):
        update_order_status(order.id, OrderStatus.CONFIRMED.value)

        with pytest.raises(InvalidTransitionError):
            update_order_status(order.id, OrderStatus.PENDING.value)

        assert _reload(order).status == OrderStatus.CONFIRMED.value

    def test_unknown_order(self, order):
        with pytest.raises(ObjectNotFoundError):
            update_order_status("no-such-order", OrderStatus.CONFIRMED.value)


class TestCancellation:
    def test_owner_cancels_pending_order(self, order, stocked):
        assert stocked.get_product("prod-phone").stock == 3

        cancelled = cancel_order(order.id, OWNER, reason="Changed my mind")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancelled_by == "Customer"
        assert cancelled.cancellation_reason == "Changed my mind"
        assert stocked.get_product("prod-phone").stock == 5
        assert stocked.get_product("prod-case").stock == 10

    def test_other_customer_is_forbidden(self, order, stocked):
        with pytest.raises(ForbiddenError):
            cancel_order(order.id, STRANGER)

        assert _reload(order).status == OrderStatus.PENDING.value
        assert stocked.get_product("prod-phone").stock == 3

    def test_admin_cancels_confirmed_order(self, order, stocked):
        update_order_status(order.id, OrderStatus.CONFIRMED.value)

        cancelled = cancel_order(order.id, ADMIN)

        assert cancelled.cancelled_by == "Admin"
        assert stocked.get_product("prod-phone").stock == 5

    def test_admin_status_update_to_cancelled_restocks(self, order, stocked):
        cancelled = update_order_status(order.id, OrderStatus.CANCELLED.value, reason="Fraud check")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Fraud check"
        assert stocked.get_product("prod-phone").stock == 5

    def test_cannot_cancel_shipping_order(self, order, stocked):
        update_order_status(order.id, OrderStatus.CONFIRMED.value)
        update_order_status(order.id, OrderStatus.SHIPPING.value)

        with pytest.raises(InvalidTransitionError):
            cancel_order(order.id, ADMIN)

        assert stocked.get_product("prod-phone").stock == 3

    def test_second_cancel_does_not_restock_again(self, order, stocked):
        cancel_order(order.id, OWNER)

        with pytest.raises(InvalidTransitionError):
            cancel_order(order.id, OWNER)

        assert stocked.get_product("prod-phone").stock == 5


class TestManualPaymentStatus:
    def _process(self, order, status):
        current_domain.process(
            UpdatePaymentStatus(order_id=str(order.id), payment_status=status),
            asynchronous=False,
        )

    def test_cash_collected_then_refunded(self, order):
        self._process(order, PaymentStatus.PAID.value)
        assert _reload(order).payment_status == PaymentStatus.PAID.value

        self._process(order, PaymentStatus.REFUNDED.value)
        assert _reload(order).payment_status == PaymentStatus.REFUNDED.value

    def test_refund_requires_payment(self, order):
        with pytest.raises(InvalidTransitionError):
            self._process(order, PaymentStatus.REFUNDED.value)

        assert _reload(order).payment_status == PaymentStatus.UNPAID.value
