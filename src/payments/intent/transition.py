"""Terminal transitions of a PaymentIntent — command, handler and cascade.

``TransitionPaymentIntent`` is the single mutation point for terminal
states. The intent and its booking or subscription are written in the
handler's unit of work: either both persist or neither does.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from payments.booking.booking import Booking
from payments.domain import payments
from payments.intent.intent import (
    EntityType,
    IntentStatus,
    PaymentIntent,
    TransitionKind,
    TransitionResult,
)
from payments.subscription.subscription import Subscription

logger = structlog.get_logger(__name__)

_OWNER_AGGREGATES = {
    EntityType.BOOKING: Booking,
    EntityType.SUBSCRIPTION: Subscription,
}


def cascade_to_owner(intent: PaymentIntent) -> None:
    """Derive the owner's payment fields from a terminal intent."""
    owner_cls = _OWNER_AGGREGATES[EntityType(intent.entity_type)]
    repo = current_domain.repository_for(owner_cls)
    owner = repo.get(str(intent.entity_id))
    owner.apply_payment_result(
        status=intent.status,
        provider_invoice_id=intent.provider_invoice_id,
        settled_at=intent.last_transition_at,
        cause=intent.cause,
    )
    repo.add(owner)


def apply_transition(
    intent: PaymentIntent,
    expected: IntentStatus,
    target: IntentStatus,
    cause: str | None = None,
    source: str = "system",
) -> TransitionResult:
    """Compare-and-swap ``intent`` to ``target`` and cascade on success.

    Must run inside a command handler so the intent and owner writes share
    one unit of work.
    """
    rejected = intent.check_transition(expected, target)
    if rejected is not None:
        log = logger.error if rejected.kind is TransitionKind.CONFLICT else logger.info
        log(
            "Payment intent transition not applied",
            intent_id=str(intent.id),
            result=rejected.kind.value,
            current_status=intent.status,
            requested_status=target.value,
            source=source,
        )
        return rejected

    intent.transition_to(target, cause=cause, source=source)
    current_domain.repository_for(PaymentIntent).add(intent)
    cascade_to_owner(intent)

    logger.info(
        "Payment intent transitioned",
        intent_id=str(intent.id),
        entity_type=intent.entity_type,
        entity_id=str(intent.entity_id),
        status=intent.status,
        cause=intent.cause,
        source=source,
    )
    return TransitionResult(TransitionKind.APPLIED, str(intent.id), intent.status)


@payments.command(part_of="PaymentIntent")
class TransitionPaymentIntent:
    """Move an intent to a terminal state if it is still in ``expected_status``."""

    intent_id = Identifier(required=True)
    expected_status = String(required=True, choices=IntentStatus)
    to_status = String(required=True, choices=IntentStatus)
    cause = String(max_length=50)
    source = String(max_length=20, default="system")


@payments.command_handler(part_of=PaymentIntent)
class TransitionPaymentIntentHandler:
    @handle(TransitionPaymentIntent)
    def transition(self, command):
        intent = current_domain.repository_for(PaymentIntent).get(command.intent_id)
        return apply_transition(
            intent,
            expected=IntentStatus(command.expected_status),
            target=IntentStatus(command.to_status),
            cause=command.cause,
            source=command.source,
        )
