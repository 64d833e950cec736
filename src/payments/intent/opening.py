"""Opening payment intents and recording invoice attempts.

An entity has at most one non-terminal intent. Opening another attempt
reuses the open intent when the amount is unchanged, and otherwise (or when
asked to) supersedes it: the old intent expires with cause ``superseded``
and a fresh intent is opened. An intent whose invoice already exists is
only superseded once that invoice has been expired with the provider.

Creating the provider invoice is claimed first, so concurrent checkouts of
the same intent call the gateway at most once between them.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from payments.booking.booking import Booking
from payments.config import get_settings
from payments.domain import payments
from payments.intent.intent import EntityType, IntentStatus, PaymentIntent, external_id_for
from payments.intent.transition import apply_transition
from payments.subscription.subscription import Subscription

logger = structlog.get_logger(__name__)

SUPERSEDED = "superseded"


@dataclass(frozen=True)
class OpenedIntent:
    intent_id: str
    status: str
    reused: bool = False
    superseded_intent_id: str | None = None


def _owner_price(entity_type: EntityType, entity_id: str) -> float:
    """Load the owner (raising ObjectNotFoundError if absent) and return its price."""
    if entity_type is EntityType.BOOKING:
        return current_domain.repository_for(Booking).get(entity_id).total_price
    return current_domain.repository_for(Subscription).get(entity_id).monthly_price


def resolve_amount(entity_type: str, entity_id: str, amount: float | None = None) -> float:
    """The amount to charge: ``amount`` when given, else the owner's price."""
    owner_price = _owner_price(EntityType(entity_type), str(entity_id))
    return amount if amount is not None else owner_price


def supersedes(existing: PaymentIntent, amount: float, supersede: bool = False) -> bool:
    """True when opening ``amount`` replaces ``existing`` instead of reusing it."""
    return supersede or existing.amount != amount


@payments.command(part_of="PaymentIntent")
class OpenPaymentIntent:
    entity_type = String(required=True, choices=EntityType)
    entity_id = Identifier(required=True)
    amount = Float()
    supersede = Boolean(default=False)
    invoice_expired = Boolean(default=False)


@payments.command_handler(part_of=PaymentIntent)
class OpenPaymentIntentHandler:
    @handle(OpenPaymentIntent)
    def open_intent(self, command):
        entity_type = EntityType(command.entity_type)
        entity_id = str(command.entity_id)
        amount = resolve_amount(entity_type.value, entity_id, command.amount)

        repo = current_domain.repository_for(PaymentIntent)
        existing = repo.find_open_for_entity(entity_type.value, entity_id)
        superseded_id = None

        if existing is not None:
            if not supersedes(existing, amount, command.supersede):
                logger.info(
                    "Reusing open payment intent",
                    intent_id=str(existing.id),
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    status=existing.status,
                )
                return OpenedIntent(intent_id=str(existing.id), status=existing.status, reused=True)

            if existing.provider_invoice_id and not command.invoice_expired:
                raise ValidationError(
                    {"supersede": [f"Invoice {existing.provider_invoice_id} must be expired with the provider first"]}
                )

            apply_transition(
                existing,
                expected=IntentStatus(existing.status),
                target=IntentStatus.EXPIRED,
                cause=SUPERSEDED,
                source="system",
            )
            superseded_id = str(existing.id)

        sequence = len(repo.for_entity(entity_type.value, entity_id)) + 1
        intent = PaymentIntent.open(
            entity_type=entity_type.value,
            entity_id=entity_id,
            amount=amount,
            external_id=external_id_for(entity_type.value, entity_id, sequence),
            currency=get_settings().currency,
        )
        repo.add(intent)

        logger.info(
            "Payment intent opened",
            intent_id=str(intent.id),
            external_id=intent.external_id,
            amount=amount,
            superseded_intent_id=superseded_id,
        )
        return OpenedIntent(
            intent_id=str(intent.id),
            status=intent.status,
            superseded_intent_id=superseded_id,
        )


@payments.command(part_of="PaymentIntent")
class ClaimInvoiceCreation:
    """Take the single right to create the intent's provider invoice."""

    intent_id = Identifier(required=True)
    claim = String(required=True, max_length=64)


@payments.command_handler(part_of=PaymentIntent)
class ClaimInvoiceCreationHandler:
    @handle(ClaimInvoiceCreation)
    def claim_creation(self, command):
        repo = current_domain.repository_for(PaymentIntent)
        intent = repo.get(command.intent_id)
        if not intent.claim_creation(command.claim, get_settings().invoice_create_lease_seconds):
            logger.info(
                "Invoice creation already claimed",
                intent_id=str(intent.id),
                status=intent.status,
            )
            return False
        repo.add(intent)
        return True


@payments.command(part_of="PaymentIntent")
class RecordInvoiceAttempt:
    intent_id = Identifier(required=True)
    claim = String(required=True, max_length=64)


@payments.command_handler(part_of=PaymentIntent)
class RecordInvoiceAttemptHandler:
    @handle(RecordInvoiceAttempt)
    def record_attempt(self, command):
        repo = current_domain.repository_for(PaymentIntent)
        intent = repo.get(command.intent_id)
        attempts = intent.record_attempt(command.claim)
        repo.add(intent)
        return attempts
