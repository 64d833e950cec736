"""Direct card charges for tokenized cards.

The card is tokenized (and 3-D Secure authenticated) on the client; the
token is charged here without a hosted invoice.
"""

from decimal import Decimal

import structlog

from payments.config import get_settings
from payments.gateway import get_gateway
from payments.gateway.port import CardChargeRequest, CardChargeResult

logger = structlog.get_logger(__name__)


async def charge_card(
    token_id: str,
    external_id: str,
    amount: float,
    description: str,
    authentication_id: str | None = None,
) -> CardChargeResult:
    if amount <= 0:
        raise ValueError(f"Charge amount must be positive, got {amount}")

    result = await get_gateway().charge_card(
        CardChargeRequest(
            token_id=token_id,
            external_id=external_id,
            amount=Decimal(str(amount)),
            currency=get_settings().currency,
            description=description,
            authentication_id=authentication_id,
        )
    )
    if result.success:
        logger.info("Card charged", external_id=external_id, charge_id=result.charge_id, status=result.status)
    else:
        logger.warning(
            "Card charge failed",
            external_id=external_id,
            kind=result.error.kind.value,
            error=result.error.message,
        )
    return result
