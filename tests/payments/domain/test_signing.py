"""Tests for HMAC request/notification signing."""

import hashlib
import hmac

from payments.gateway.signing import (
    NOTIFICATION_SIGNATURE_FIELDS,
    REQUEST_SIGNATURE_FIELDS,
    SignatureScheme,
    raw_signature,
    sign,
)

SCHEME = SignatureScheme(access_key="AK", secret_key="SK", partner_code="PARTNER")


def _notification(**overrides):
    payload = {
        "orderId": "ORD123456780001",
        "requestId": "req-1",
        "amount": 150000,
        "orderInfo": "Payment for order ORD123456780001",
        "orderType": "momo_wallet",
        "transId": 4088878653,
        "resultCode": 0,
        "message": "Successful.",
        "payType": "qr",
        "responseTime": 1721720663942,
        "extraData": "",
    }
    payload.update(overrides)
    return payload


class TestRawSignature:
    def test_request_fields_are_in_gateway_order(self):
        assert REQUEST_SIGNATURE_FIELDS == (
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

    def test_notification_fields_differ_from_request_fields(self):
        assert "transId" in NOTIFICATION_SIGNATURE_FIELDS
        assert "ipnUrl" not in NOTIFICATION_SIGNATURE_FIELDS
        assert NOTIFICATION_SIGNATURE_FIELDS[-1] == "transId"

    def test_missing_values_render_empty(self):
        assert raw_signature(("a", "b"), {"a": 1}) == "a=1&b="

    def test_sign_is_hex_hmac_sha256(self):
        expected = hmac.new(b"SK", b"a=1", hashlib.sha256).hexdigest()
        assert sign("a=1", "SK") == expected


class TestSignatureScheme:
    def test_request_signature_uses_configured_credentials(self):
        values = {
            "amount": 1000,
            "extraData": "",
            "ipnUrl": "https://shop.test/ipn",
            "orderId": "ORD1",
            "orderInfo": "info",
            "redirectUrl": "https://shop.test/return",
            "requestId": "req",
            "requestType": "payWithMethod",
        }
        raw = (
            "accessKey=AK&amount=1000&extraData=&ipnUrl=https://shop.test/ipn&orderId=ORD1"
            "&orderInfo=info&partnerCode=PARTNER&redirectUrl=https://shop.test/return"
            "&requestId=req&requestType=payWithMethod"
        )
        assert SCHEME.sign_request(values) == sign(raw, "SK")

    def test_valid_notification_verifies(self):
        payload = _notification()
        payload["signature"] = SCHEME.sign_notification(payload)
        assert SCHEME.verify_notification(payload) is True

    def test_string_result_code_signs_the_same(self):
        numeric = _notification(resultCode=0)
        textual = _notification(resultCode="0")
        assert SCHEME.sign_notification(numeric) == SCHEME.sign_notification(textual)

    def test_tampered_amount_fails(self):
        payload = _notification()
        payload["signature"] = SCHEME.sign_notification(payload)
        payload["amount"] = 1
        assert SCHEME.verify_notification(payload) is False

    def test_wrong_secret_fails(self):
        other = SignatureScheme(access_key="AK", secret_key="other", partner_code="PARTNER")
        payload = _notification()
        payload["signature"] = other.sign_notification(payload)
        assert SCHEME.verify_notification(payload) is False

    def test_missing_required_fields_fail_without_raising(self):
        payload = _notification()
        payload["signature"] = SCHEME.sign_notification(payload)
        for field in ("signature", "orderId", "transId", "resultCode"):
            broken = dict(payload)
            del broken[field]
            assert SCHEME.verify_notification(broken) is False

    def test_non_dict_payload_fails(self):
        assert SCHEME.verify_notification(None) is False
        assert SCHEME.verify_notification("signature=abc") is False

    def test_non_string_signature_fails(self):
        payload = _notification(signature=12345)
        assert SCHEME.verify_notification(payload) is False

    def test_custom_field_order_is_honoured(self):
        reordered = SignatureScheme(
            access_key="AK",
            secret_key="SK",
            partner_code="PARTNER",
            notification_fields=tuple(reversed(NOTIFICATION_SIGNATURE_FIELDS)),
        )
        payload = _notification()
        payload["signature"] = SCHEME.sign_notification(payload)
        assert reordered.verify_notification(payload) is False

    def test_non_ascii_signature_fails_without_raising(self):
        payload = _notification()
        payload["signature"] = "é" * 64
        assert SCHEME.verify_notification(payload) is False
