"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (PAYMENT_GATEWAY=fake, default)
- MoMoGateway for the real wallet (PAYMENT_GATEWAY=momo)
"""

import os

from payments.gateway.port import CallbackUrls, GatewayError, PaymentGateway, PaymentLink

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY", "fake")
        if adapter == "fake":
            from payments.gateway.fake_adapter import FakeGateway

            _current_gateway = FakeGateway()
        elif adapter == "momo":
            from payments.gateway.momo_adapter import MoMoGateway

            _current_gateway = MoMoGateway.from_env()
        else:
            raise ValueError(f"Unknown payment gateway: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None


def callback_urls() -> CallbackUrls:
    """Callback URLs advertised to the gateway, from the environment."""
    return CallbackUrls(
        redirect_url=os.environ.get("PAYMENT_REDIRECT_URL", "http://localhost:8000/payments/return"),
        ipn_url=os.environ.get("PAYMENT_IPN_URL", "http://localhost:8000/payments/notify"),
    )


__all__ = [
    "CallbackUrls",
    "GatewayError",
    "PaymentGateway",
    "PaymentLink",
    "callback_urls",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]
