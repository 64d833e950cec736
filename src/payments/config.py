"""Runtime settings for the payments context, read from the environment.

Provides get_settings() / set_settings() so tests can swap in tighter
timings without touching the process environment.
"""

import os
from dataclasses import dataclass

_PLACEHOLDER_KEYS = {"", "your_secret_key", "xnd_development_placeholder"}


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass(frozen=True)
class PaymentSettings:
    xendit_secret_key: str = ""
    xendit_callback_token: str = ""
    xendit_api_url: str = "https://api.xendit.co/v2"
    gateway_timeout_seconds: float = 15.0
    invoice_create_max_attempts: int = 3
    invoice_create_backoff_seconds: float = 0.5
    invoice_create_lease_seconds: float = 60.0
    in_flight_wait_seconds: float = 10.0
    poll_max_attempts: int = 60
    poll_interval_ms: int = 5000
    booking_invoice_duration_seconds: int = 86400
    subscription_invoice_duration_seconds: int = 86400 * 7
    currency: str = "PHP"
    payment_methods_cache_ttl_seconds: int = 300

    @property
    def has_gateway_credentials(self) -> bool:
        return self.xendit_secret_key not in _PLACEHOLDER_KEYS

    @classmethod
    def from_env(cls) -> "PaymentSettings":
        return cls(
            xendit_secret_key=os.environ.get("XENDIT_SECRET_KEY", ""),
            xendit_callback_token=os.environ.get("XENDIT_CALLBACK_TOKEN", ""),
            xendit_api_url=os.environ.get("XENDIT_API_URL", cls.xendit_api_url).rstrip("/"),
            gateway_timeout_seconds=_env_float("PAYMENT_GATEWAY_TIMEOUT_SECONDS", cls.gateway_timeout_seconds),
            invoice_create_max_attempts=_env_int("INVOICE_CREATE_MAX_ATTEMPTS", cls.invoice_create_max_attempts),
            invoice_create_backoff_seconds=_env_float(
                "INVOICE_CREATE_BACKOFF_SECONDS", cls.invoice_create_backoff_seconds
            ),
            invoice_create_lease_seconds=_env_float(
                "INVOICE_CREATE_LEASE_SECONDS", cls.invoice_create_lease_seconds
            ),
            in_flight_wait_seconds=_env_float("INVOICE_IN_FLIGHT_WAIT_SECONDS", cls.in_flight_wait_seconds),
            poll_max_attempts=_env_int("PAYMENT_POLL_MAX_ATTEMPTS", cls.poll_max_attempts),
            poll_interval_ms=_env_int("PAYMENT_POLL_INTERVAL_MS", cls.poll_interval_ms),
            booking_invoice_duration_seconds=_env_int(
                "BOOKING_INVOICE_DURATION_SECONDS", cls.booking_invoice_duration_seconds
            ),
            subscription_invoice_duration_seconds=_env_int(
                "SUBSCRIPTION_INVOICE_DURATION_SECONDS", cls.subscription_invoice_duration_seconds
            ),
            currency=os.environ.get("PAYMENT_CURRENCY", cls.currency),
            payment_methods_cache_ttl_seconds=_env_int(
                "XENDIT_METHODS_CACHE_TTL_SECONDS", cls.payment_methods_cache_ttl_seconds
            ),
        )


_current_settings: PaymentSettings | None = None


def get_settings() -> PaymentSettings:
    """Return the active settings, loading them from the environment once."""
    global _current_settings
    if _current_settings is None:
        _current_settings = PaymentSettings.from_env()
    return _current_settings


def set_settings(settings: PaymentSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop overrides; the next get_settings() re-reads the environment."""
    global _current_settings
    _current_settings = None
