"""MoMo wallet gateway adapter.

Talks to the ``/v2/gateway/api/create`` endpoint. Requests are signed with
HMAC-SHA256 over the request field order, notifications are verified over
the notification field order (see ``payments.gateway.signing``).
"""

import os
from uuid import uuid4

import requests
import structlog

from payments.gateway.port import CallbackUrls, GatewayError, PaymentGateway, PaymentLink
from payments.gateway.signing import SignatureScheme

logger = structlog.get_logger(__name__)

CREATE_PATH = "/v2/gateway/api/create"
REQUEST_TYPE = "payWithMethod"


class MoMoGateway(PaymentGateway):
    def __init__(
        self,
        access_key: str,
        secret_key: str,
        partner_code: str = "MOMO",
        partner_name: str = "Test",
        store_id: str = "MomoTestStore",
        api_host: str = "test-payment.momo.vn",
        timeout: float = 30.0,
        lang: str = "vi",
        scheme: SignatureScheme | None = None,
    ) -> None:
        self.partner_name = partner_name
        self.store_id = store_id
        self.endpoint = f"https://{api_host}{CREATE_PATH}"
        self.timeout = timeout
        self.lang = lang
        self.scheme = scheme or SignatureScheme(
            access_key=access_key,
            secret_key=secret_key,
            partner_code=partner_code,
        )

    @classmethod
    def from_env(cls) -> "MoMoGateway":
        access_key = os.environ.get("MOMO_ACCESS_KEY")
        secret_key = os.environ.get("MOMO_SECRET_KEY")
        if not access_key or not secret_key:
            raise ValueError("MOMO_ACCESS_KEY and MOMO_SECRET_KEY must be set")

        return cls(
            access_key=access_key,
            secret_key=secret_key,
            partner_code=os.environ.get("MOMO_PARTNER_CODE", "MOMO"),
            partner_name=os.environ.get("MOMO_PARTNER_NAME", "Test"),
            store_id=os.environ.get("MOMO_STORE_ID", "MomoTestStore"),
            api_host=os.environ.get("MOMO_API_HOST", "test-payment.momo.vn"),
            timeout=float(os.environ.get("MOMO_TIMEOUT_SECONDS", "30")),
        )

    def build_payment_request(
        self,
        order_code: str,
        amount: int,
        callback_urls: CallbackUrls,
        order_info: str = "",
        extra_data: str = "",
    ) -> PaymentLink:
        request_id = uuid4().hex
        values = {
            "amount": amount,
            "extraData": extra_data,
            "ipnUrl": callback_urls.ipn_url,
            "orderId": order_code,
            "orderInfo": order_info or f"Payment for order {order_code}",
            "redirectUrl": callback_urls.redirect_url,
            "requestId": request_id,
            "requestType": REQUEST_TYPE,
        }
        body = {
            **values,
            "partnerCode": self.scheme.partner_code,
            "partnerName": self.partner_name,
            "storeId": self.store_id,
            "lang": self.lang,
            "autoCapture": True,
            "orderGroupId": "",
            "signature": self.scheme.sign_request(values),
        }

        try:
            response = requests.post(self.endpoint, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Payment gateway unreachable", order_code=order_code, error=str(exc))
            raise GatewayError(f"Payment gateway request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Payment gateway returned an unreadable response (HTTP {response.status_code})"
            ) from exc

        result_code = data.get("resultCode")
        if result_code != 0 or not data.get("payUrl"):
            logger.warning(
                "Payment gateway rejected request",
                order_code=order_code,
                result_code=result_code,
                gateway_message=data.get("message"),
            )
            raise GatewayError(
                f"Payment gateway error: {data.get('message') or 'Unknown error'}",
                result_code=result_code if isinstance(result_code, int) else None,
            )

        logger.info("Payment link created", order_code=order_code, request_id=request_id)
        return PaymentLink(
            payment_url=data["payUrl"],
            transaction_id=str(data.get("requestId") or request_id),
            qr_code_url=data.get("qrCodeUrl"),
        )

    def verify_notification_signature(self, payload: dict) -> bool:
        return self.scheme.verify_notification(payload)
