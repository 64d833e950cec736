"""Webhook receiver — authenticates and processes gateway callbacks.

Callbacks carry a shared secret in the X-Callback-Token header. Anything
that fails authentication is counted and never reaches the reconciliation
engine. Authenticated callbacks are acknowledged whether or not the
invoice is known, so the provider only retries genuine processing failures.
"""

import hmac
import time
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from payments.config import get_settings
from payments.gateway.status_map import map_provider_status
from payments.reconciliation.engine import ReconciliationKind, on_outcome
from payments.webhook.receipt import RecordWebhookReceipt, receipt_exists, receipt_key_for

logger = structlog.get_logger(__name__)

_rejected_count = 0


def rejected_count() -> int:
    """Number of callbacks refused for bad or missing credentials."""
    return _rejected_count


def reset_rejected_count() -> None:
    global _rejected_count
    _rejected_count = 0


def authenticate(token: str | None) -> bool:
    """Constant-time check of the callback token.

    With no token configured every callback is refused.
    """
    global _rejected_count
    expected = get_settings().xendit_callback_token
    if expected and token and hmac.compare_digest(token.encode(), expected.encode()):
        return True

    _rejected_count += 1
    if not expected:
        logger.error("Webhook refused: no callback token configured")
    else:
        logger.warning("Webhook refused: invalid callback token", token_present=bool(token))
    return False


@dataclass(frozen=True)
class WebhookAck:
    success: bool
    result: str
    duplicate_event: bool = False
    intent_id: str | None = None
    status: str | None = None


def process_invoice_callback(
    provider_invoice_id: str,
    provider_status: str,
    external_id: str | None = None,
) -> WebhookAck:
    """Reconcile one authenticated invoice callback."""
    key = receipt_key_for(provider_invoice_id, provider_status)
    if receipt_exists(key):
        logger.info("Duplicate webhook acknowledged", receipt_key=key)
        return WebhookAck(success=True, result="duplicate", duplicate_event=True)

    started = time.perf_counter()
    outcome = map_provider_status(provider_status)
    try:
        result = on_outcome(
            "webhook",
            provider_invoice_id,
            outcome,
            provider_status=provider_status,
            external_id=external_id,
        )
    except Exception as e:
        current_domain.process(
            RecordWebhookReceipt(
                provider_invoice_id=provider_invoice_id,
                external_id=external_id,
                provider_status=provider_status,
                result="error",
                processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
                outcome="failure",
                error_message=str(e)[:1000] or type(e).__name__,
            ),
            asynchronous=False,
        )
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000

    if result.kind is not ReconciliationKind.IGNORED:
        current_domain.process(
            RecordWebhookReceipt(
                provider_invoice_id=provider_invoice_id,
                external_id=external_id,
                provider_status=provider_status,
                result=result.kind.value,
                processing_time_ms=round(elapsed_ms, 3),
            ),
            asynchronous=False,
        )

    return WebhookAck(
        success=True,
        result=result.kind.value,
        intent_id=result.intent_id,
        status=result.status,
    )
