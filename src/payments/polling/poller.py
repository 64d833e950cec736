"""Polling client — asks the gateway for an outcome on a fixed interval.

Polling is one of two racing notification paths; the webhook is the other.
Each tick first re-reads the stored intent, so a poll that loses the race
stops without calling the gateway. Definitive outcomes go through the
reconciliation engine like any webhook would. Running out of attempts
leaves the intent PENDING for a later webhook to settle.
"""

import asyncio
from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from payments.config import get_settings
from payments.gateway import get_gateway
from payments.intent.intent import IntentStatus, PaymentIntent
from payments.reconciliation.engine import on_outcome

logger = structlog.get_logger(__name__)


class PollOutcome(Enum):
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"


def _latest_intent(entity_type: str, entity_id: str) -> PaymentIntent:
    intent = current_domain.repository_for(PaymentIntent).latest_for_entity(entity_type, entity_id)
    if intent is None:
        raise ObjectNotFoundError(f"No payment intent for {entity_type} {entity_id}")
    return intent


async def poll_until_terminal(
    entity_type: str,
    entity_id: str,
    max_attempts: int | None = None,
    interval_ms: int | None = None,
) -> PollOutcome:
    """Poll until the entity's latest intent is terminal or attempts run out."""
    settings = get_settings()
    max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts
    interval_ms = settings.poll_interval_ms if interval_ms is None else interval_ms
    gateway = get_gateway()
    log = logger.bind(entity_type=entity_type, entity_id=entity_id)

    for attempt in range(1, max_attempts + 1):
        intent = _latest_intent(entity_type, entity_id)
        if intent.is_terminal:
            log.info("Intent already settled", status=intent.status, attempt=attempt)
            return PollOutcome(intent.status)

        if not intent.provider_invoice_id:
            log.debug("No invoice attached yet, skipping tick", attempt=attempt)
        else:
            result = await gateway.get_invoice_status(intent.provider_invoice_id)
            if not result.success:
                log.warning("Status check failed, skipping tick", attempt=attempt, kind=result.error.kind.value)
            elif result.outcome.is_definitive:
                reconciled = on_outcome(
                    "poll",
                    intent.provider_invoice_id,
                    result.outcome,
                    provider_status=result.provider_status,
                    external_id=intent.external_id,
                )
                status = IntentStatus(reconciled.status or _latest_intent(entity_type, entity_id).status)
                if status.is_terminal:
                    return PollOutcome(status.value)

        if attempt < max_attempts:
            await asyncio.sleep(interval_ms / 1000)

    log.info("Polling timed out, intent left pending", attempts=max_attempts)
    return PollOutcome.TIMED_OUT
