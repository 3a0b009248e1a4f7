"""Who is calling, and what they may touch."""

from dataclasses import dataclass
from enum import Enum

from ordering.errors import ForbiddenError


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    customer_id: str
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def ensure_owner_or_admin(order, caller: Caller) -> None:
    if caller.is_admin:
        return
    if str(order.customer_id) != str(caller.customer_id):
        raise ForbiddenError("You are not allowed to access this order")


def ensure_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise ForbiddenError("Administrator role required")
