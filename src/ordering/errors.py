"""Error types raised by the ordering context.

Validation-flavoured failures extend Protean's ValidationError so that they
carry the usual ``{"field": ["message"]}`` payload. Stock conflicts and
authorization failures are their own exceptions and are mapped to HTTP
status codes in ``ordering.api.errors``.
"""

from protean.exceptions import ValidationError


class InvalidTransitionError(ValidationError):
    """A status change not permitted by the order state machine."""


class EmptySelectionError(ValidationError):
    """Nothing in the cart qualifies for checkout."""


class OutOfStockError(Exception):
    """Requested quantity exceeds what the catalog can supply."""

    def __init__(self, product_id: str, name: str | None, requested: int, available: int | None = None) -> None:
        self.product_id = product_id
        self.name = name
        self.requested = requested
        self.available = available
        label = name or product_id
        if available is None:
            message = f"Product {label} is out of stock"
        else:
            message = f"Product {label} only has {available} left in stock (requested {requested})"
        super().__init__(message)
        self.message = message


class ForbiddenError(Exception):
    """Caller is not allowed to act on this resource."""

    def __init__(self, message: str = "You are not allowed to access this resource") -> None:
        super().__init__(message)
        self.message = message


class StockRestoreError(Exception):
    """Reserved stock could not be put back for some lines."""

    def __init__(self, product_ids: list[str]) -> None:
        self.product_ids = product_ids
        super().__init__(f"Failed to restore stock for products: {', '.join(product_ids)}")
