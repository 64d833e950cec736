"""The one place provider status vocabulary is normalized.

Both the polling client and the webhook receiver translate provider
statuses through ``map_provider_status``. Matching is case-insensitive.
"""

import structlog

from payments.gateway.port import Outcome

logger = structlog.get_logger(__name__)

STATUS_OUTCOMES: dict[str, Outcome] = {
    "PAID": Outcome.PAID,
    "SETTLED": Outcome.PAID,
    "COMPLETED": Outcome.PAID,
    "ACTIVE": Outcome.PAID,
    "FAILED": Outcome.FAILED,
    "PAUSED": Outcome.FAILED,
    "EXPIRED": Outcome.EXPIRED,
    "PENDING": Outcome.STILL_PENDING,
}


def map_provider_status(status: str | None) -> Outcome:
    """Translate a provider status into an Outcome.

    Unrecognised or missing statuses are treated as still pending.
    """
    key = (status or "").strip().upper()
    outcome = STATUS_OUTCOMES.get(key)
    if outcome is None:
        logger.warning("Unrecognised provider status treated as pending", provider_status=status)
        return Outcome.STILL_PENDING
    return outcome
