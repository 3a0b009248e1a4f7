"""Ordering bounded context — Orders, Shopping Cart and payment reconciliation.

Handles checkout (cart or buy-now to Order), the order status state machine,
and reconciliation of asynchronous payment gateway notifications.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
