import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _adapters(catalog, gateway):
    """Every ordering test runs against a fresh catalog and fake gateway."""
    yield


@pytest.fixture
def stocked(catalog):
    """Seed a small catalog: two phones and a case."""
    catalog.add_product("prod-phone", "Phone X", price=1_500_000, stock=5, image="phone.png")
    catalog.add_product("prod-case", "Phone Case", price=200_000, stock=10)
    catalog.add_product("prod-last", "Last One", price=990_000, stock=1)
    return catalog


@pytest.fixture
def address():
    return {
        "full_name": "Nguyen Van A",
        "phone": "0901234567",
        "province": "Ho Chi Minh",
        "district": "District 1",
        "ward": "Ben Nghe",
        "street": "1 Le Loi",
    }


@pytest.fixture
def notification_for(gateway):
    """Build a gateway-signed notification payload for an order."""
    from payments.gateway.notification import encode_order_reference

    def _build(order, result_code=0, **overrides):
        payload = {
            "orderId": order.order_code,
            "requestId": order.payment_transaction_id or "req-test",
            "amount": order.total,
            "orderInfo": f"Payment for order {order.order_code}",
            "orderType": "momo_wallet",
            "transId": 4088878653,
            "resultCode": result_code,
            "message": "Successful." if result_code == 0 else "Transaction denied by user.",
            "payType": "qr",
            "responseTime": 1721720663942,
            "extraData": encode_order_reference(str(order.id)),
        }
        payload.update(overrides)
        return gateway.sign_notification(payload)

    return _build
