"""Tests for the PaymentIntent aggregate state machine."""

from datetime import UTC, datetime, timedelta

import pytest
from payments.intent.events import (
    PaymentIntentExpired,
    PaymentIntentFailed,
    PaymentIntentOpened,
    PaymentIntentPaid,
    ProviderInvoiceAttached,
)
from payments.intent.intent import (
    IntentStatus,
    PaymentIntent,
    TransitionKind,
    external_id_for,
)
from protean.exceptions import ValidationError


def _intent(**overrides):
    data = {
        "entity_type": "booking",
        "entity_id": "bk-001",
        "amount": 390.0,
        "external_id": "BOOKING_bk-001",
    }
    data.update(overrides)
    return PaymentIntent.open(**data)


def _pending_intent():
    intent = _intent()
    intent.claim_creation("worker-a", 60)
    intent.record_attempt("worker-a")
    intent.attach_invoice("inv-001", "https://pay.example/inv-001", None)
    intent._events.clear()
    return intent


class TestOpen:
    def test_starts_created(self):
        intent = _intent()
        assert intent.status == IntentStatus.CREATED.value
        assert intent.attempts == 0
        assert intent.provider_invoice_id is None
        assert intent.currency == "PHP"

    def test_raises_opened_event(self):
        intent = _intent()
        assert len(intent._events) == 1
        assert isinstance(intent._events[0], PaymentIntentOpened)
        assert intent._events[0].external_id == "BOOKING_bk-001"

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            _intent(amount=0)

    def test_rejects_unknown_entity_type(self):
        with pytest.raises(ValueError):
            _intent(entity_type="voucher")


class TestEventVersions:
    @pytest.mark.parametrize(
        "event_cls",
        [PaymentIntentOpened, ProviderInvoiceAttached, PaymentIntentPaid, PaymentIntentFailed, PaymentIntentExpired],
    )
    def test_versions_are_integers(self, event_cls):
        assert event_cls.__version__ == 1
        assert isinstance(event_cls.__version__, int)


class TestExternalId:
    def test_first_attempt(self):
        assert external_id_for("booking", "42") == "BOOKING_42"

    def test_later_attempts_are_suffixed(self):
        assert external_id_for("subscription", "7", 3) == "SUBSCRIPTION_7_3"


class TestAttempts:
    def test_record_attempt_counts(self):
        intent = _intent()
        intent.claim_creation("worker-a", 60)
        intent.record_attempt("worker-a")
        assert intent.record_attempt("worker-a") == 2

    def test_cannot_record_attempt_once_pending(self):
        intent = _pending_intent()
        with pytest.raises(ValidationError):
            intent.record_attempt("worker-a")

    def test_cannot_record_attempt_without_claim(self):
        intent = _intent()
        with pytest.raises(ValidationError):
            intent.record_attempt("worker-a")

    def test_cannot_record_attempt_under_another_claim(self):
        intent = _intent()
        intent.claim_creation("worker-a", 60)
        with pytest.raises(ValidationError):
            intent.record_attempt("worker-b")
        assert intent.attempts == 0


class TestCreationClaim:
    def test_first_claim_is_granted(self):
        intent = _intent()
        assert intent.claim_creation("worker-a", 60) is True
        assert intent.creation_claim == "worker-a"
        assert intent.creation_claimed_at is not None

    def test_live_claim_blocks_others(self):
        intent = _intent()
        now = datetime.now(UTC)
        intent.claim_creation("worker-a", 60, now=now)
        assert intent.claim_creation("worker-b", 60, now=now + timedelta(seconds=30)) is False
        assert intent.creation_claim == "worker-a"

    def test_stale_claim_is_taken_over(self):
        intent = _intent()
        now = datetime.now(UTC)
        intent.claim_creation("worker-a", 60, now=now)
        assert intent.claim_creation("worker-b", 60, now=now + timedelta(seconds=61)) is True
        assert intent.creation_claim == "worker-b"

    def test_no_claim_once_pending(self):
        intent = _pending_intent()
        assert intent.claim_creation("worker-b", 60) is False


class TestAttachInvoice:
    def test_attach_moves_to_pending(self):
        intent = _intent()
        intent.attach_invoice("inv-001", "https://pay.example/inv-001", None)
        assert intent.status == IntentStatus.PENDING.value
        assert intent.provider_invoice_id == "inv-001"
        assert isinstance(intent._events[-1], ProviderInvoiceAttached)

    def test_same_invoice_is_already_applied(self):
        intent = _pending_intent()
        result = intent.check_attachment("inv-001")
        assert result.kind == TransitionKind.ALREADY_APPLIED

    def test_different_invoice_is_conflict(self):
        intent = _pending_intent()
        result = intent.check_attachment("inv-999")
        assert result.kind == TransitionKind.CONFLICT
        assert "inv-001" in result.conflict.reason

    def test_attach_allowed_when_created(self):
        assert _intent().check_attachment("inv-001") is None

    def test_cannot_attach_twice(self):
        intent = _pending_intent()
        with pytest.raises(ValidationError):
            intent.attach_invoice("inv-002", None, None)


class TestCheckTransition:
    def test_allowed(self):
        intent = _pending_intent()
        assert intent.check_transition(IntentStatus.PENDING, IntentStatus.PAID) is None

    def test_same_terminal_is_already_applied(self):
        intent = _pending_intent()
        intent.transition_to(IntentStatus.PAID, source="webhook")
        result = intent.check_transition(IntentStatus.PENDING, IntentStatus.PAID)
        assert result.kind == TransitionKind.ALREADY_APPLIED
        assert result.conflict is None

    def test_other_terminal_is_conflict(self):
        intent = _pending_intent()
        intent.transition_to(IntentStatus.PAID, source="webhook")
        result = intent.check_transition(IntentStatus.PENDING, IntentStatus.FAILED)
        assert result.kind == TransitionKind.CONFLICT
        assert result.conflict.current_status == "paid"
        assert result.conflict.requested_status == "failed"

    def test_unexpected_current_status_is_conflict(self):
        intent = _intent()
        result = intent.check_transition(IntentStatus.PENDING, IntentStatus.PAID)
        assert result.kind == TransitionKind.CONFLICT

    def test_created_cannot_be_paid(self):
        intent = _intent()
        result = intent.check_transition(IntentStatus.CREATED, IntentStatus.PAID)
        assert result.kind == TransitionKind.CONFLICT


class TestTransitionTo:
    def test_paid(self):
        intent = _pending_intent()
        intent.transition_to(IntentStatus.PAID, source="poll")
        assert intent.status == "paid"
        assert intent.cause == "paid"
        assert intent.source == "poll"
        assert isinstance(intent._events[-1], PaymentIntentPaid)

    def test_failed_records_cause(self):
        intent = _intent()
        intent.transition_to(IntentStatus.FAILED, cause="gateway_unavailable", source="checkout")
        assert intent.status == "failed"
        assert intent.cause == "gateway_unavailable"
        assert isinstance(intent._events[-1], PaymentIntentFailed)

    def test_expired(self):
        intent = _pending_intent()
        intent.transition_to(IntentStatus.EXPIRED, source="webhook")
        assert isinstance(intent._events[-1], PaymentIntentExpired)

    def test_terminal_is_final(self):
        intent = _pending_intent()
        intent.transition_to(IntentStatus.FAILED)
        with pytest.raises(ValidationError):
            intent.transition_to(IntentStatus.PAID)

    def test_non_terminal_target_rejected(self):
        with pytest.raises(ValidationError):
            _intent().transition_to(IntentStatus.PENDING)

    def test_created_cannot_jump_to_paid(self):
        with pytest.raises(ValidationError):
            _intent().transition_to(IntentStatus.PAID)


class TestTimestamps:
    def test_last_transition_never_moves_backwards(self):
        intent = _pending_intent()
        future = datetime.now(UTC) + timedelta(hours=1)
        intent.last_transition_at = future
        intent.transition_to(IntentStatus.PAID)
        assert intent.last_transition_at == future

    def test_transition_advances_timestamp(self):
        intent = _pending_intent()
        before = intent.last_transition_at
        intent.transition_to(IntentStatus.PAID)
        assert intent.last_transition_at >= before
