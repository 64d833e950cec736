"""Domain events for the PaymentIntent aggregate.

Terminal events (paid, failed, expired) are raised exactly once per intent,
inside the same unit of work that cascades the outcome to the owning
booking or subscription. The notification dispatcher reacts to them after
commit.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from payments.domain import payments


@payments.event(part_of="PaymentIntent")
class PaymentIntentOpened:
    """A new payment attempt was opened for a booking or subscription."""

    __version__ = 1

    intent_id = Identifier(required=True)
    external_id = String(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    opened_at = DateTime(required=True)


@payments.event(part_of="PaymentIntent")
class ProviderInvoiceAttached:
    """The gateway issued an invoice; the intent is now pending."""

    __version__ = 1

    intent_id = Identifier(required=True)
    provider_invoice_id = String(required=True)
    hosted_url = String()
    attempts = Integer(required=True)
    attached_at = DateTime(required=True)


@payments.event(part_of="PaymentIntent")
class PaymentIntentPaid:
    __version__ = 1

    intent_id = Identifier(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    provider_invoice_id = String()
    amount = Float(required=True)
    source = String(required=True)
    paid_at = DateTime(required=True)


@payments.event(part_of="PaymentIntent")
class PaymentIntentFailed:
    __version__ = 1

    intent_id = Identifier(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    provider_invoice_id = String()
    amount = Float(required=True)
    cause = String(required=True)
    source = String(required=True)
    failed_at = DateTime(required=True)


@payments.event(part_of="PaymentIntent")
class PaymentIntentExpired:
    __version__ = 1

    intent_id = Identifier(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    provider_invoice_id = String()
    amount = Float(required=True)
    cause = String(required=True)
    source = String(required=True)
    expired_at = DateTime(required=True)
