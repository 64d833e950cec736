"""Reconciliation engine — the single entry point for payment outcomes.

Polling and webhooks both report outcomes through ``on_outcome``; the
source is only logged and recorded. Outcomes for unknown invoices and
conflicting outcomes are dead-lettered and acknowledged, never raised.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog
from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.gateway.port import Outcome
from payments.intent.attachment import AttachProviderInvoice
from payments.intent.intent import Conflict, IntentStatus, PaymentIntent, TransitionKind, TransitionResult
from payments.intent.transition import apply_transition
from payments.reconciliation.dead_letter import DeadLetterReason, RecordDeadLetter

logger = structlog.get_logger(__name__)

_OUTCOME_STATUS = {
    Outcome.PAID: IntentStatus.PAID,
    Outcome.FAILED: IntentStatus.FAILED,
    Outcome.EXPIRED: IntentStatus.EXPIRED,
}


class ReconciliationKind(Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    CONFLICT = "conflict"
    UNKNOWN_INVOICE = "unknown_invoice"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconciliationResult:
    kind: ReconciliationKind
    intent_id: str | None = None
    status: str | None = None
    conflict: Conflict | None = None

    @classmethod
    def from_transition(cls, result: TransitionResult) -> "ReconciliationResult":
        return cls(
            kind=ReconciliationKind(result.kind.value),
            intent_id=result.intent_id,
            status=result.status,
            conflict=result.conflict,
        )


@payments.command(part_of="PaymentIntent")
class ReconcileOutcome:
    """Apply a definitive gateway outcome to the intent owning the invoice."""

    source = String(required=True, max_length=20)
    provider_invoice_id = String(required=True, max_length=255)
    outcome = String(required=True, choices=Outcome)


@payments.command_handler(part_of=PaymentIntent)
class ReconcileOutcomeHandler:
    @handle(ReconcileOutcome)
    def reconcile(self, command):
        intent = current_domain.repository_for(PaymentIntent).find_by_provider_invoice(command.provider_invoice_id)
        if intent is None:
            return ReconciliationResult(kind=ReconciliationKind.UNKNOWN_INVOICE)

        target = _OUTCOME_STATUS[Outcome(command.outcome)]
        result = apply_transition(
            intent,
            expected=IntentStatus.PENDING,
            target=target,
            cause=target.value,
            source=command.source,
        )
        return ReconciliationResult.from_transition(result)


def _dead_letter(
    reason: DeadLetterReason,
    source: str,
    provider_invoice_id: str | None,
    outcome: str | None = None,
    provider_status: str | None = None,
    external_id: str | None = None,
    conflict: Conflict | None = None,
    intent_id: str | None = None,
) -> None:
    current_domain.process(
        RecordDeadLetter(
            source=source,
            reason=reason.value,
            provider_invoice_id=provider_invoice_id,
            external_id=external_id,
            provider_status=provider_status,
            outcome=outcome,
            intent_id=intent_id or (conflict.intent_id if conflict else None),
            detail=conflict.reason if conflict else None,
        ),
        asynchronous=False,
    )


def on_invoice_created(
    intent_id: str,
    provider_invoice_id: str,
    hosted_url: str | None = None,
    expires_at: datetime | None = None,
) -> ReconciliationResult:
    """Attach the gateway's invoice to a CREATED intent, making it PENDING.

    Re-delivering the same invoice id is a no-op. A different invoice id
    for an intent that already has one is a conflict.
    """
    result = current_domain.process(
        AttachProviderInvoice(
            intent_id=intent_id,
            provider_invoice_id=provider_invoice_id,
            hosted_url=hosted_url,
            expires_at=expires_at,
        ),
        asynchronous=False,
    )
    if result.kind is TransitionKind.CONFLICT:
        _dead_letter(
            DeadLetterReason.CONFLICT,
            source="checkout",
            provider_invoice_id=provider_invoice_id,
            conflict=result.conflict,
        )
    return ReconciliationResult.from_transition(result)


def on_outcome(
    source: str,
    provider_invoice_id: str,
    outcome: Outcome,
    provider_status: str | None = None,
    external_id: str | None = None,
) -> ReconciliationResult:
    """Apply an outcome reported by ``source`` ("poll" or "webhook")."""
    log = logger.bind(source=source, provider_invoice_id=provider_invoice_id, outcome=outcome.value)

    if not outcome.is_definitive:
        log.debug("Outcome still pending, nothing to reconcile")
        return ReconciliationResult(kind=ReconciliationKind.IGNORED)

    result = current_domain.process(
        ReconcileOutcome(source=source, provider_invoice_id=provider_invoice_id, outcome=outcome.value),
        asynchronous=False,
    )

    if result.kind is ReconciliationKind.UNKNOWN_INVOICE:
        log.warning("Outcome for unknown invoice dead-lettered", external_id=external_id)
        _dead_letter(
            DeadLetterReason.UNKNOWN_INVOICE,
            source=source,
            provider_invoice_id=provider_invoice_id,
            outcome=outcome.value,
            provider_status=provider_status,
            external_id=external_id,
        )
    elif result.kind is ReconciliationKind.CONFLICT:
        log.error(
            "Conflicting outcome dead-lettered",
            intent_id=result.intent_id,
            stored_status=result.status,
            reason=result.conflict.reason if result.conflict else None,
        )
        _dead_letter(
            DeadLetterReason.CONFLICT,
            source=source,
            provider_invoice_id=provider_invoice_id,
            outcome=outcome.value,
            provider_status=provider_status,
            external_id=external_id,
            conflict=result.conflict,
        )
    else:
        log.info("Outcome reconciled", intent_id=result.intent_id, result=result.kind.value, status=result.status)

    return result
