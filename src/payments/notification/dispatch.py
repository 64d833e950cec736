"""Payment notification dispatcher.

Reacts to terminal PaymentIntent events and publishes a realtime update
for the owning booking or subscription. Publishing is fire-and-forget:
failures are logged and never undo the transition that raised the event.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from payments.booking.booking import Booking
from payments.domain import payments
from payments.intent.events import PaymentIntentExpired, PaymentIntentFailed, PaymentIntentPaid
from payments.intent.intent import EntityType, PaymentIntent
from payments.intent.opening import SUPERSEDED
from payments.notification import get_realtime
from payments.subscription.subscription import Subscription

logger = structlog.get_logger(__name__)

ADMIN_CHANNEL = "admin-dashboard"
PUBLIC_CHANNEL = "public-realtime"


def customer_channel(email: str) -> str:
    return f"user-customer-{email}"


def _booking_message(event) -> tuple[list[str], str, dict]:
    booking = current_domain.repository_for(Booking).get(str(event.entity_id))
    channels = [PUBLIC_CHANNEL, ADMIN_CHANNEL, customer_channel(booking.customer_email)]
    payload = {
        "booking_id": str(booking.id),
        "payment_status": booking.payment_status,
        "intent_id": str(event.intent_id),
        "provider_invoice_id": event.provider_invoice_id,
        "amount": event.amount,
    }
    return channels, "booking.updated", payload


def _subscription_message(event, status: str) -> tuple[list[str], str, dict]:
    subscription = current_domain.repository_for(Subscription).get(str(event.entity_id))
    channels = [PUBLIC_CHANNEL, ADMIN_CHANNEL, customer_channel(subscription.customer_email)]
    event_name = "subscription.renewed" if status == "paid" else "subscription.failed"
    payload = {
        "subscription_id": str(subscription.id),
        "status": subscription.status,
        "payment_status": status,
        "renewal_date": subscription.renewal_date.isoformat() if subscription.renewal_date else None,
        "intent_id": str(event.intent_id),
        "amount": event.amount,
    }
    return channels, event_name, payload


@payments.event_handler(part_of=PaymentIntent)
class PaymentNotificationDispatcher:
    """Publishes payment outcomes once per terminal transition."""

    def _publish(self, event, status: str) -> None:
        try:
            if EntityType(event.entity_type) is EntityType.BOOKING:
                channels, event_name, payload = _booking_message(event)
            else:
                channels, event_name, payload = _subscription_message(event, status)

            result = get_realtime().publish(channels, event_name, payload)
            if result.get("status") != "sent":
                logger.warning(
                    "Payment notification not delivered",
                    intent_id=str(event.intent_id),
                    error=result.get("error"),
                )
        except Exception as e:
            logger.error(
                "Payment notification dispatch failed",
                intent_id=str(event.intent_id),
                error=str(e),
            )

    @handle(PaymentIntentPaid)
    def on_paid(self, event: PaymentIntentPaid) -> None:
        self._publish(event, "paid")

    @handle(PaymentIntentFailed)
    def on_failed(self, event: PaymentIntentFailed) -> None:
        self._publish(event, "failed")

    @handle(PaymentIntentExpired)
    def on_expired(self, event: PaymentIntentExpired) -> None:
        if event.cause == SUPERSEDED and EntityType(event.entity_type) is EntityType.SUBSCRIPTION:
            return
        self._publish(event, "expired")
