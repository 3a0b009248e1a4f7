"""Repository for the Order aggregate."""

from dataclasses import dataclass

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus, PaymentMethod, PaymentStatus

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class OrderPage:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id."""

    def find_by_code(self, order_code: str) -> Order | None:
        return self._dao.query.filter(order_code=order_code).all().first

    def list_for_customer(self, customer_id, page=1, limit=DEFAULT_PAGE_SIZE, status=None) -> OrderPage:
        return self._page({"customer_id": str(customer_id)}, page, limit, status)

    def list_all(self, page=1, limit=DEFAULT_PAGE_SIZE, status=None) -> OrderPage:
        return self._page({}, page, limit, status)

    def find_stale_gateway_orders(self, created_before_ms: int) -> list[Order]:
        """Gateway orders still Pending/Unpaid that were created before the cutoff."""
        return (
            self._dao.query.filter(
                payment_method=PaymentMethod.GATEWAY.value,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.UNPAID.value,
                created_at__lt=created_before_ms,
            )
            .all()
            .items
        )

    def _page(self, criteria, page, limit, status):
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
        if status:
            criteria = {**criteria, "status": OrderStatus(status).value}

        query = self._dao.query
        if criteria:
            query = query.filter(**criteria)

        results = (
            query.order_by("-created_at")
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return OrderPage(items=results.items, page=page, limit=limit, total=results.total)
