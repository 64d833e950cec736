"""Invoice gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- XenditGateway when a real secret key is configured
- FakeGateway for development and testing otherwise
"""

from payments.config import get_settings
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import InvoiceGateway
from payments.gateway.xendit_adapter import XenditGateway

_current_gateway: InvoiceGateway | None = None


def get_gateway() -> InvoiceGateway:
    """Return the current invoice gateway."""
    global _current_gateway
    if _current_gateway is None:
        settings = get_settings()
        if settings.has_gateway_credentials:
            _current_gateway = XenditGateway(
                secret_key=settings.xendit_secret_key,
                api_url=settings.xendit_api_url,
                timeout=settings.gateway_timeout_seconds,
            )
        else:
            _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: InvoiceGateway) -> None:
    """Override the active invoice gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
