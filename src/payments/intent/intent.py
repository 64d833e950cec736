"""PaymentIntent aggregate — the local record of one payment attempt.

State Machine:
    CREATED → PENDING → PAID / FAILED / EXPIRED
    CREATED → FAILED   (invoice creation exhausted or rejected)
    CREATED → EXPIRED  (superseded before an invoice existed)
    PENDING → EXPIRED  (also when superseded, once the invoice is expired)

Terminal states are final. Callers never move an intent directly; every
terminal move goes through the compare-and-swap in ``check_transition``
followed by ``transition_to``, so concurrent reports of the same outcome
collapse into a single transition.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from payments.domain import payments
from payments.intent.events import (
    PaymentIntentExpired,
    PaymentIntentFailed,
    PaymentIntentOpened,
    PaymentIntentPaid,
    ProviderInvoiceAttached,
)


class IntentStatus(Enum):
    CREATED = "created"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({IntentStatus.PAID, IntentStatus.FAILED, IntentStatus.EXPIRED})


class EntityType(Enum):
    BOOKING = "booking"
    SUBSCRIPTION = "subscription"


class OutcomeSource(Enum):
    POLL = "poll"
    WEBHOOK = "webhook"
    CHECKOUT = "checkout"
    SYSTEM = "system"


_VALID_TRANSITIONS = {
    IntentStatus.CREATED: {IntentStatus.PENDING, IntentStatus.FAILED, IntentStatus.EXPIRED},
    IntentStatus.PENDING: {IntentStatus.PAID, IntentStatus.FAILED, IntentStatus.EXPIRED},
    IntentStatus.PAID: set(),  # Terminal
    IntentStatus.FAILED: set(),  # Terminal
    IntentStatus.EXPIRED: set(),  # Terminal
}


class TransitionKind(Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Conflict:
    """A requested transition that disagrees with what is stored."""

    intent_id: str
    current_status: str
    requested_status: str
    reason: str


@dataclass(frozen=True)
class TransitionResult:
    kind: TransitionKind
    intent_id: str
    status: str
    conflict: Conflict | None = None

    @property
    def applied(self) -> bool:
        return self.kind is TransitionKind.APPLIED


def external_id_for(entity_type: str, entity_id: str, sequence: int = 1) -> str:
    """Correlation id sent to the gateway: BOOKING_<id>, then BOOKING_<id>_2, ..."""
    base = f"{entity_type.upper()}_{entity_id}"
    return base if sequence <= 1 else f"{base}_{sequence}"


def _as_utc(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@payments.aggregate
class PaymentIntent:
    external_id = String(required=True, max_length=255)
    entity_type = String(required=True, choices=EntityType)
    entity_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="PHP")
    provider_invoice_id = String(max_length=255)
    hosted_url = String(max_length=2048)
    expires_at = DateTime()
    status = String(
        choices=IntentStatus,
        default=IntentStatus.CREATED.value,
    )
    cause = String(max_length=50)
    source = String(max_length=20)
    attempts = Integer(default=0)
    creation_claim = String(max_length=64)
    creation_claimed_at = DateTime()
    created_at = DateTime()
    last_transition_at = DateTime()

    @property
    def is_terminal(self) -> bool:
        return IntentStatus(self.status).is_terminal

    def _assert_can_transition(self, target_status: IntentStatus) -> None:
        current = IntentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _touch(self, now: datetime) -> datetime:
        """Advance last_transition_at, never moving it backwards."""
        previous = _as_utc(self.last_transition_at)
        if previous is not None and previous > now:
            now = previous
        self.last_transition_at = now
        return now

    @classmethod
    def open(
        cls,
        entity_type: str,
        entity_id: str,
        amount: float,
        external_id: str,
        currency: str = "PHP",
    ):
        """Open a new payment attempt in the CREATED state."""
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Amount must be positive"]})

        now = datetime.now(UTC)
        intent = cls(
            external_id=external_id,
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            amount=amount,
            currency=currency,
            created_at=now,
            last_transition_at=now,
        )
        intent.raise_(
            PaymentIntentOpened(
                intent_id=str(intent.id),
                external_id=external_id,
                entity_type=intent.entity_type,
                entity_id=str(entity_id),
                amount=amount,
                currency=currency,
                opened_at=now,
            )
        )
        return intent

    def claim_creation(self, claim: str, lease_seconds: float, now: datetime | None = None) -> bool:
        """Take the right to call the gateway for this intent.

        Only one caller holds the claim at a time. A claim older than
        ``lease_seconds`` is treated as abandoned and may be taken over.
        """
        if IntentStatus(self.status) != IntentStatus.CREATED:
            return False

        now = now or datetime.now(UTC)
        claimed_at = _as_utc(self.creation_claimed_at)
        if self.creation_claim and self.creation_claim != claim and claimed_at is not None:
            if (now - claimed_at).total_seconds() < lease_seconds:
                return False

        self.creation_claim = claim
        self.creation_claimed_at = now
        return True

    def record_attempt(self, claim: str) -> int:
        """Count one gateway creation call made under ``claim``."""
        if IntentStatus(self.status) != IntentStatus.CREATED:
            raise ValidationError({"attempts": [f"Cannot record an invoice attempt in status {self.status}"]})
        if self.creation_claim != claim:
            raise ValidationError({"attempts": ["Invoice creation is claimed by another caller"]})
        self.attempts = (self.attempts or 0) + 1
        return self.attempts

    def check_attachment(self, provider_invoice_id: str) -> TransitionResult | None:
        """Return the result when attaching ``provider_invoice_id`` needs no change.

        None means the invoice can be attached.
        """
        if self.provider_invoice_id:
            if self.provider_invoice_id == provider_invoice_id:
                return TransitionResult(TransitionKind.ALREADY_APPLIED, str(self.id), self.status)
            return TransitionResult(
                TransitionKind.CONFLICT,
                str(self.id),
                self.status,
                Conflict(
                    intent_id=str(self.id),
                    current_status=self.status,
                    requested_status=IntentStatus.PENDING.value,
                    reason=f"Invoice {self.provider_invoice_id} already attached, got {provider_invoice_id}",
                ),
            )
        if IntentStatus(self.status) != IntentStatus.CREATED:
            return TransitionResult(
                TransitionKind.CONFLICT,
                str(self.id),
                self.status,
                Conflict(
                    intent_id=str(self.id),
                    current_status=self.status,
                    requested_status=IntentStatus.PENDING.value,
                    reason=f"Cannot attach an invoice in status {self.status}",
                ),
            )
        return None

    def attach_invoice(self, provider_invoice_id: str, hosted_url: str | None, expires_at: datetime | None) -> None:
        self._assert_can_transition(IntentStatus.PENDING)
        if self.provider_invoice_id:
            raise ValidationError({"provider_invoice_id": ["Provider invoice is already attached"]})

        now = self._touch(datetime.now(UTC))
        self.provider_invoice_id = provider_invoice_id
        self.hosted_url = hosted_url
        self.expires_at = expires_at
        self.status = IntentStatus.PENDING.value
        self.raise_(
            ProviderInvoiceAttached(
                intent_id=str(self.id),
                provider_invoice_id=provider_invoice_id,
                hosted_url=hosted_url,
                attempts=self.attempts or 0,
                attached_at=now,
            )
        )

    def check_transition(self, expected: IntentStatus, target: IntentStatus) -> TransitionResult | None:
        """Compare-and-swap guard.

        Returns ALREADY_APPLIED when the intent already sits in ``target``,
        CONFLICT when it is terminal elsewhere or not in ``expected``, and
        None when the transition may proceed.
        """
        current = IntentStatus(self.status)
        if current == target and current.is_terminal:
            return TransitionResult(TransitionKind.ALREADY_APPLIED, str(self.id), self.status)

        if current.is_terminal:
            reason = f"Intent is already {current.value}"
        elif current != expected:
            reason = f"Expected {expected.value}, found {current.value}"
        elif target not in _VALID_TRANSITIONS[current]:
            reason = f"Cannot transition from {current.value} to {target.value}"
        else:
            return None

        return TransitionResult(
            TransitionKind.CONFLICT,
            str(self.id),
            self.status,
            Conflict(
                intent_id=str(self.id),
                current_status=current.value,
                requested_status=target.value,
                reason=reason,
            ),
        )

    def transition_to(self, target: IntentStatus, cause: str | None = None, source: str = "system") -> None:
        """Move to a terminal state and raise the matching event."""
        if not target.is_terminal:
            raise ValidationError({"status": [f"{target.value} is not a terminal status"]})
        self._assert_can_transition(target)

        now = self._touch(datetime.now(UTC))
        self.status = target.value
        self.cause = cause or target.value
        self.source = source

        common = dict(
            intent_id=str(self.id),
            entity_type=self.entity_type,
            entity_id=str(self.entity_id),
            provider_invoice_id=self.provider_invoice_id,
            amount=self.amount,
            source=source,
        )
        if target == IntentStatus.PAID:
            self.raise_(PaymentIntentPaid(**common, paid_at=now))
        elif target == IntentStatus.FAILED:
            self.raise_(PaymentIntentFailed(**common, cause=self.cause, failed_at=now))
        else:
            self.raise_(PaymentIntentExpired(**common, cause=self.cause, expired_at=now))
