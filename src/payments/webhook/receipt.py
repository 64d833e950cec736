"""WebhookReceipt aggregate — log of processed gateway callbacks.

A callback is keyed by invoice id and provider status, so a redelivered
notification is recognised and acknowledged without being processed again,
while a later status for the same invoice is still handled. Failed
processing is logged too, with its error, but does not count as a
receipt: the provider's retry is processed normally.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import DateTime, Float, String
from protean.utils.globals import current_domain

from payments.domain import payments


def receipt_key_for(provider_invoice_id: str, provider_status: str) -> str:
    return f"{provider_invoice_id}:{(provider_status or '').upper()}"


@payments.aggregate
class WebhookReceipt:
    receipt_key = String(required=True, max_length=300)
    provider_invoice_id = String(required=True, max_length=255)
    external_id = String(max_length=255)
    provider_status = String(max_length=50)
    result = String(max_length=30)
    processing_time_ms = Float()
    outcome = String(max_length=10, default="success")
    error_message = String(max_length=1000)
    received_at = DateTime()


def receipt_exists(receipt_key: str) -> bool:
    repo = current_domain.repository_for(WebhookReceipt)
    return bool(repo._dao.query.filter(receipt_key=receipt_key, outcome="success").all().items)


@payments.command(part_of="WebhookReceipt")
class RecordWebhookReceipt:
    provider_invoice_id = String(required=True, max_length=255)
    external_id = String(max_length=255)
    provider_status = String(max_length=50)
    result = String(max_length=30)
    processing_time_ms = Float()
    outcome = String(max_length=10, default="success")
    error_message = String(max_length=1000)


@payments.command_handler(part_of=WebhookReceipt)
class RecordWebhookReceiptHandler:
    @handle(RecordWebhookReceipt)
    def record(self, command):
        receipt = WebhookReceipt(
            receipt_key=receipt_key_for(command.provider_invoice_id, command.provider_status),
            provider_invoice_id=command.provider_invoice_id,
            external_id=command.external_id,
            provider_status=command.provider_status,
            result=command.result,
            processing_time_ms=command.processing_time_ms,
            outcome=command.outcome,
            error_message=command.error_message,
            received_at=datetime.now(UTC),
        )
        current_domain.repository_for(WebhookReceipt).add(receipt)
        return str(receipt.id)
