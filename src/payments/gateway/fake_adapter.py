"""Configurable fake payment gateway for development and testing.

This adapter simulates the wallet gateway without any external calls.
It can be configured at runtime to succeed or fail, and it signs and
verifies notifications with a real HMAC over a test secret, so the
reconciliation path runs exactly as it does against the real gateway.
"""

from uuid import uuid4

from payments.gateway.port import CallbackUrls, GatewayError, PaymentGateway, PaymentLink
from payments.gateway.signing import SignatureScheme

TEST_ACCESS_KEY = "fake-access-key"
TEST_SECRET_KEY = "fake-secret-key"
TEST_PARTNER_CODE = "FAKE"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.scheme = SignatureScheme(
            access_key=TEST_ACCESS_KEY,
            secret_key=TEST_SECRET_KEY,
            partner_code=TEST_PARTNER_CODE,
        )

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def build_payment_request(
        self,
        order_code: str,
        amount: int,
        callback_urls: CallbackUrls,
        order_info: str = "",
        extra_data: str = "",
    ) -> PaymentLink:
        self.calls.append(
            {
                "method": "build_payment_request",
                "order_code": order_code,
                "amount": amount,
                "redirect_url": callback_urls.redirect_url,
                "ipn_url": callback_urls.ipn_url,
                "order_info": order_info,
                "extra_data": extra_data,
            }
        )

        if not self.should_succeed:
            raise GatewayError(self.failure_reason, result_code=99)

        request_id = f"fake_req_{uuid4().hex[:12]}"
        return PaymentLink(
            payment_url=f"https://fake-gateway.test/pay/{order_code}",
            transaction_id=request_id,
            qr_code_url=f"https://fake-gateway.test/qr/{order_code}",
        )

    def verify_notification_signature(self, payload: dict) -> bool:
        return self.scheme.verify_notification(payload)

    def sign_notification(self, payload: dict) -> dict:
        """Return a copy of ``payload`` carrying a valid signature."""
        return {**payload, "signature": self.scheme.sign_notification(payload)}
