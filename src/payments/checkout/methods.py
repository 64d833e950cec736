"""Payment methods offered at checkout.

The gateway's list is cached for ``payment_methods_cache_ttl_seconds``.
When the gateway cannot be reached or offers nothing, a static list is
served (and cached) so checkout never blocks on it.
"""

import time
from dataclasses import dataclass

import structlog

from payments.config import get_settings
from payments.gateway import get_gateway
from payments.gateway.port import PaymentMethod

logger = structlog.get_logger(__name__)

FALLBACK_METHODS: tuple[PaymentMethod, ...] = (
    PaymentMethod(id="card", label="Credit / Debit Card"),
    PaymentMethod(id="gcash", label="GCash (e-wallet)"),
    PaymentMethod(id="paymaya", label="PayMaya (e-wallet)"),
    PaymentMethod(id="bank_transfer", label="Bank Transfer"),
    PaymentMethod(id="pay_at_counter", label="Pay at Counter (Cash)"),
)


@dataclass(frozen=True)
class MethodListing:
    methods: tuple[PaymentMethod, ...]
    source: str  # "cache", "gateway" or "fallback"


_cache: tuple[tuple[PaymentMethod, ...], float] | None = None


def clear_methods_cache() -> None:
    global _cache
    _cache = None


def _store(methods: tuple[PaymentMethod, ...]) -> None:
    global _cache
    _cache = (methods, time.monotonic() + get_settings().payment_methods_cache_ttl_seconds)


async def available_methods(refresh: bool = False) -> MethodListing:
    """Methods to offer the customer; ``refresh`` bypasses the cache."""
    if not refresh and _cache is not None and _cache[1] > time.monotonic():
        return MethodListing(methods=_cache[0], source="cache")

    result = await get_gateway().list_payment_methods()
    if result.success and result.methods:
        _store(result.methods)
        return MethodListing(methods=result.methods, source="gateway")

    logger.warning(
        "Payment methods unavailable from gateway, using fallback",
        error=result.error.message if result.error else "empty list",
    )
    _store(FALLBACK_METHODS)
    return MethodListing(methods=FALLBACK_METHODS, source="fallback")
