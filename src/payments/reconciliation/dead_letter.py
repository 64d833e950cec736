"""DeadLetter aggregate — outcomes that could not be applied.

Unknown invoices and conflicting outcomes land here for operator review
instead of failing the webhook or poll that reported them.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from payments.domain import payments


class DeadLetterReason(Enum):
    UNKNOWN_INVOICE = "unknown_invoice"
    CONFLICT = "conflict"


@payments.aggregate
class DeadLetter:
    source = String(required=True, max_length=20)
    reason = String(required=True, choices=DeadLetterReason)
    provider_invoice_id = String(max_length=255)
    external_id = String(max_length=255)
    provider_status = String(max_length=50)
    outcome = String(max_length=20)
    intent_id = Identifier()
    detail = Text()
    received_at = DateTime()


@payments.command(part_of="DeadLetter")
class RecordDeadLetter:
    source = String(required=True, max_length=20)
    reason = String(required=True, choices=DeadLetterReason)
    provider_invoice_id = String(max_length=255)
    external_id = String(max_length=255)
    provider_status = String(max_length=50)
    outcome = String(max_length=20)
    intent_id = Identifier()
    detail = Text()


@payments.command_handler(part_of=DeadLetter)
class RecordDeadLetterHandler:
    @handle(RecordDeadLetter)
    def record(self, command):
        letter = DeadLetter(
            source=command.source,
            reason=command.reason,
            provider_invoice_id=command.provider_invoice_id,
            external_id=command.external_id,
            provider_status=command.provider_status,
            outcome=command.outcome,
            intent_id=command.intent_id,
            detail=command.detail,
            received_at=datetime.now(UTC),
        )
        current_domain.repository_for(DeadLetter).add(letter)
        return str(letter.id)
