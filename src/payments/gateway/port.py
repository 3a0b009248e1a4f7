"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and MoMoGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class GatewayError(Exception):
    """The gateway could not be reached or refused the request."""

    def __init__(self, message: str, result_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.result_code = result_code


@dataclass(frozen=True)
class CallbackUrls:
    """Where the gateway sends the shopper (redirect) and the server (ipn)."""

    redirect_url: str
    ipn_url: str


@dataclass(frozen=True)
class PaymentLink:
    """Result of a successful payment-initiation request."""

    payment_url: str
    transaction_id: str
    qr_code_url: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def build_payment_request(
        self,
        order_code: str,
        amount: int,
        callback_urls: CallbackUrls,
        order_info: str = "",
        extra_data: str = "",
    ) -> PaymentLink:
        """Ask the gateway for a payment URL. Raises GatewayError on failure."""
        ...

    @abstractmethod
    def verify_notification_signature(self, payload: dict) -> bool:
        """Check that a notification payload was signed by the gateway.

        Must return False, never raise, for malformed payloads.
        """
        ...
