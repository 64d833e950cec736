"""Car-wash payments bounded context.

Owns the payment lifecycle of bookings and subscriptions: invoice creation
through the payment gateway, payment intents, and reconciliation of the
outcomes reported by polling and gateway webhooks.
"""

import structlog
from protean.domain import Domain

payments = Domain(name="payments")

logger = structlog.get_logger(__name__)
