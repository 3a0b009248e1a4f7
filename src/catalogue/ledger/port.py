"""Catalog port (abstract interface).

The ordering context never touches product rows directly. It reads price,
name and stock through this port and mutates stock only through
``adjust_stock``, which every adapter must implement as a single conditional
write.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    """Point-in-time view of a product row."""

    product_id: str
    name: str
    price: int
    stock: int
    image: str | None = None
    purchases: int = 0


class Catalog(ABC):
    """Abstract product catalog and inventory ledger."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot:
        """Return the product or raise ObjectNotFoundError."""
        ...

    @abstractmethod
    def adjust_stock(self, product_id: str, delta: int) -> bool:
        """Apply ``stock += delta`` atomically.

        A negative delta is applied only if the resulting stock stays >= 0,
        otherwise nothing changes and False is returned. A positive delta
        always succeeds for an existing product.
        """
        ...

    @abstractmethod
    def increment_purchases(self, product_id: str, quantity: int) -> None:
        """Bump the product's purchases counter."""
        ...
