"""Attaching the provider invoice to an intent (CREATED → PENDING)."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.intent.intent import PaymentIntent, TransitionKind, TransitionResult

logger = structlog.get_logger(__name__)


@payments.command(part_of="PaymentIntent")
class AttachProviderInvoice:
    intent_id = Identifier(required=True)
    provider_invoice_id = String(required=True, max_length=255)
    hosted_url = String(max_length=2048)
    expires_at = DateTime()


@payments.command_handler(part_of=PaymentIntent)
class AttachProviderInvoiceHandler:
    @handle(AttachProviderInvoice)
    def attach(self, command):
        repo = current_domain.repository_for(PaymentIntent)
        intent = repo.get(command.intent_id)

        rejected = intent.check_attachment(command.provider_invoice_id)
        if rejected is not None:
            if rejected.kind is TransitionKind.CONFLICT:
                logger.error(
                    "Provider invoice conflicts with intent",
                    intent_id=str(intent.id),
                    stored_invoice_id=intent.provider_invoice_id,
                    provider_invoice_id=command.provider_invoice_id,
                    status=intent.status,
                )
            return rejected

        intent.attach_invoice(command.provider_invoice_id, command.hosted_url, command.expires_at)
        repo.add(intent)
        logger.info(
            "Provider invoice attached",
            intent_id=str(intent.id),
            provider_invoice_id=command.provider_invoice_id,
            attempts=intent.attempts,
        )
        return TransitionResult(TransitionKind.APPLIED, str(intent.id), intent.status)
