"""HMAC-SHA256 request signing.

The gateway signs ``key1=value1&key2=value2...`` strings built from a fixed,
ordered field list. Requests and notifications use different field lists,
so each direction gets its own tuple on the scheme.
"""

import hashlib
import hmac
from dataclasses import dataclass

REQUEST_SIGNATURE_FIELDS = (
    "accessKey",
    "amount",
    "extraData",
    "ipnUrl",
    "orderId",
    "orderInfo",
    "partnerCode",
    "redirectUrl",
    "requestId",
    "requestType",
)

NOTIFICATION_SIGNATURE_FIELDS = (
    "accessKey",
    "amount",
    "extraData",
    "message",
    "orderId",
    "orderInfo",
    "orderType",
    "partnerCode",
    "payType",
    "requestId",
    "responseTime",
    "resultCode",
    "transId",
)

# Notification fields that must be present for a signature to be checked at all
NOTIFICATION_REQUIRED_FIELDS = ("signature", "orderId", "transId", "resultCode")


def _stringify(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def raw_signature(fields: tuple[str, ...], values: dict) -> str:
    """Concatenate ``field=value`` pairs in the given order."""
    return "&".join(f"{field}={_stringify(values.get(field))}" for field in fields)


def sign(raw: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class SignatureScheme:
    """Credentials plus the per-direction field orders."""

    access_key: str
    secret_key: str
    partner_code: str
    request_fields: tuple[str, ...] = REQUEST_SIGNATURE_FIELDS
    notification_fields: tuple[str, ...] = NOTIFICATION_SIGNATURE_FIELDS

    def _with_credentials(self, values: dict) -> dict:
        return {**values, "accessKey": self.access_key, "partnerCode": self.partner_code}

    def sign_request(self, values: dict) -> str:
        return sign(raw_signature(self.request_fields, self._with_credentials(values)), self.secret_key)

    def sign_notification(self, values: dict) -> str:
        return sign(raw_signature(self.notification_fields, self._with_credentials(values)), self.secret_key)

    def verify_notification(self, payload) -> bool:
        if not isinstance(payload, dict):
            return False
        if any(payload.get(field) in (None, "") for field in NOTIFICATION_REQUIRED_FIELDS):
            return False

        supplied = payload["signature"]
        if not isinstance(supplied, str):
            return False

        expected = self.sign_notification(payload)
        # compare_digest rejects non-ASCII str operands, so compare bytes
        return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
