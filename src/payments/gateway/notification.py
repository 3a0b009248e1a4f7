"""Normalization of inbound gateway notifications.

Raw gateway payloads carry ``resultCode`` as either a number or a string
and tuck our own order reference into base64-encoded ``extraData``. Both are
normalized here, once, so that reconciliation logic only ever sees a
``GatewayNotification``.
"""

import base64
import binascii
import json
from dataclasses import dataclass

from payments.gateway.port import GatewayError


@dataclass(frozen=True)
class GatewayNotification:
    order_code: str
    order_ref: str | None
    transaction_id: str | None
    succeeded: bool
    result_code: int
    amount: int | None = None
    message: str = ""


def encode_order_reference(order_id: str) -> str:
    """Pack an order id into the opaque ``extraData`` field."""
    return base64.b64encode(json.dumps({"order_id": str(order_id)}).encode("utf-8")).decode("ascii")


def decode_order_reference(extra_data: str | None) -> str | None:
    """Recover the order id packed by ``encode_order_reference``.

    Returns None when extraData is absent or not something we produced.
    """
    if not extra_data:
        return None
    try:
        decoded = json.loads(base64.b64decode(extra_data, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(decoded, dict):
        return None
    order_id = decoded.get("order_id")
    return str(order_id) if order_id else None


def _as_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise GatewayError(f"Malformed notification: {field} is not numeric")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise GatewayError(f"Malformed notification: {field} is not numeric") from exc


def parse_notification(payload: dict) -> GatewayNotification:
    """Build a GatewayNotification from a verified payload.

    Raises GatewayError when required fields are missing or malformed.
    """
    order_code = payload.get("orderId")
    if not order_code:
        raise GatewayError("Malformed notification: orderId is missing")

    if payload.get("resultCode") in (None, ""):
        raise GatewayError("Malformed notification: resultCode is missing")
    result_code = _as_int(payload["resultCode"], "resultCode")

    amount = payload.get("amount")
    trans_id = payload.get("transId")

    return GatewayNotification(
        order_code=str(order_code),
        order_ref=decode_order_reference(payload.get("extraData")),
        transaction_id=str(trans_id) if trans_id not in (None, "") else None,
        succeeded=result_code == 0,
        result_code=result_code,
        amount=_as_int(amount, "amount") if amount not in (None, "") else None,
        message=str(payload.get("message") or ""),
    )
