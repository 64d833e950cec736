"""Payment initiation — open an intent and obtain a hosted invoice.

The intent is persisted as CREATED before the gateway is called, so a
crash between the two leaves a recoverable intent rather than an orphan
invoice. Invoice creation is retried with exponential backoff on timeouts
and transport errors; rejections are not retried.

Only the caller holding the intent's creation claim talks to the gateway.
A concurrent checkout of the same intent waits for that caller's invoice.
Superseding an intent that already has an invoice expires the invoice with
the provider first, so the old link can no longer be paid.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from payments.booking.booking import Booking
from payments.config import get_settings
from payments.gateway import get_gateway
from payments.gateway.port import GatewayError, GatewayErrorKind, InvoiceRequest
from payments.intent.intent import EntityType, IntentStatus, PaymentIntent
from payments.intent.opening import (
    SUPERSEDED,
    ClaimInvoiceCreation,
    OpenPaymentIntent,
    RecordInvoiceAttempt,
    resolve_amount,
    supersedes,
)
from payments.intent.transition import TransitionPaymentIntent
from payments.reconciliation.engine import ReconciliationKind, on_invoice_created, on_outcome
from payments.subscription.subscription import Subscription

logger = structlog.get_logger(__name__)

GATEWAY_UNAVAILABLE = "gateway_unavailable"
INVALID_REQUEST = "invalid_request"
CREATION_IN_PROGRESS = "creation_in_progress"
SUPERSEDE_REFUSED = "supersede_refused"
ALREADY_PAID = "already_paid"

_IN_FLIGHT_CHECK_SECONDS = 0.05


@dataclass(frozen=True)
class CheckoutResult:
    success: bool
    intent_id: str
    status: str
    invoice_id: str | None = None
    hosted_url: str | None = None
    expiry: datetime | None = None
    reused: bool = False
    error: str | None = None
    cause: str | None = None


@dataclass(frozen=True)
class CheckoutRequest:
    entity_type: str
    entity_id: str
    payer_email: str
    description: str
    amount: float | None = None
    customer_name: str | None = None
    success_redirect_url: str | None = None
    failure_redirect_url: str | None = None
    supersede: bool = False
    preferred_payment_method: str | None = None


def _from_intent(intent: PaymentIntent, reused: bool = False) -> CheckoutResult:
    return CheckoutResult(
        success=True,
        intent_id=str(intent.id),
        status=intent.status,
        invoice_id=intent.provider_invoice_id,
        hosted_url=intent.hosted_url,
        expiry=intent.expires_at,
        reused=reused,
    )


def _invoice_request(request: CheckoutRequest, intent: PaymentIntent) -> InvoiceRequest:
    settings = get_settings()
    if EntityType(intent.entity_type) is EntityType.SUBSCRIPTION:
        duration = settings.subscription_invoice_duration_seconds
        item_name = current_domain.repository_for(Subscription).get(str(intent.entity_id)).package_name
    else:
        duration = settings.booking_invoice_duration_seconds
        item_name = current_domain.repository_for(Booking).get(str(intent.entity_id)).service_id

    return InvoiceRequest(
        external_id=intent.external_id,
        amount=Decimal(str(intent.amount)),
        currency=intent.currency,
        payer_email=request.payer_email,
        description=request.description,
        invoice_duration_seconds=duration,
        customer_name=request.customer_name,
        item_name=item_name,
        success_redirect_url=request.success_redirect_url,
        failure_redirect_url=request.failure_redirect_url,
        preferred_payment_method=request.preferred_payment_method,
    )


def _fail(intent_id: str, cause: str, error: GatewayError | None) -> CheckoutResult:
    result = current_domain.process(
        TransitionPaymentIntent(
            intent_id=intent_id,
            expected_status=IntentStatus.CREATED.value,
            to_status=IntentStatus.FAILED.value,
            cause=cause,
            source="checkout",
        ),
        asynchronous=False,
    )
    return CheckoutResult(
        success=False,
        intent_id=intent_id,
        status=result.status,
        error=error.message if error else cause,
        cause=cause,
    )


def _not_started(intent: PaymentIntent, cause: str, error: str, reused: bool = True) -> CheckoutResult:
    return CheckoutResult(
        success=False,
        intent_id=str(intent.id),
        status=intent.status,
        invoice_id=intent.provider_invoice_id,
        hosted_url=intent.hosted_url,
        reused=reused,
        error=error,
        cause=cause,
    )


async def _expire_replaced_invoice(request: CheckoutRequest) -> bool | CheckoutResult:
    """Expire the invoice of an open intent this checkout will supersede.

    Returns True once the old invoice is expired, False when nothing needs
    expiring, or a CheckoutResult when the intent cannot be superseded.
    """
    repo = current_domain.repository_for(PaymentIntent)
    existing = repo.find_open_for_entity(request.entity_type, request.entity_id)
    if existing is None or not existing.provider_invoice_id:
        return False
    amount = resolve_amount(request.entity_type, request.entity_id, request.amount)
    if not supersedes(existing, amount, request.supersede):
        return False

    gateway = get_gateway()
    invoice_id = existing.provider_invoice_id
    log = logger.bind(intent_id=str(existing.id), provider_invoice_id=invoice_id)
    expired = await gateway.expire_invoice(invoice_id)
    if expired.success:
        log.info("Superseded invoice expired with provider")
        return True

    log.warning("Could not expire superseded invoice", kind=expired.error.kind.value, error=expired.error.message)
    status = await gateway.get_invoice_status(invoice_id)
    if status.success and status.outcome.is_definitive:
        on_outcome(
            "checkout",
            invoice_id,
            status.outcome,
            provider_status=status.provider_status,
            external_id=existing.external_id,
        )

    current = repo.get(str(existing.id))
    if IntentStatus(current.status) == IntentStatus.PAID:
        return _not_started(current, ALREADY_PAID, f"Invoice {invoice_id} is already paid")
    if current.is_terminal:
        return False
    return _not_started(
        current,
        SUPERSEDE_REFUSED,
        f"Invoice {invoice_id} could not be expired: {expired.error.message}",
    )


async def _await_in_flight(intent_id: str) -> CheckoutResult:
    """Wait for the caller holding the creation claim to finish."""
    repo = current_domain.repository_for(PaymentIntent)
    deadline = time.monotonic() + get_settings().in_flight_wait_seconds

    intent = repo.get(intent_id)
    while IntentStatus(intent.status) == IntentStatus.CREATED:
        if time.monotonic() >= deadline:
            logger.warning("Invoice creation still in flight", intent_id=intent_id)
            return _not_started(intent, CREATION_IN_PROGRESS, "Invoice creation is already in progress")
        await asyncio.sleep(_IN_FLIGHT_CHECK_SECONDS)
        intent = repo.get(intent_id)

    if IntentStatus(intent.status) == IntentStatus.PENDING:
        return _from_intent(intent, reused=True)
    return _not_started(intent, intent.cause, intent.cause or intent.status)


async def _discard_orphan_invoice(intent_id: str, provider_invoice_id: str) -> CheckoutResult:
    """The intent moved on while its invoice was being created."""
    expired = await get_gateway().expire_invoice(provider_invoice_id)
    logger.warning(
        "Invoice created for an intent that moved on",
        intent_id=intent_id,
        provider_invoice_id=provider_invoice_id,
        expired_with_provider=expired.success,
    )
    intent = current_domain.repository_for(PaymentIntent).get(intent_id)
    return _not_started(intent, intent.cause or SUPERSEDED, f"Payment intent is {intent.status}", reused=False)


async def start_payment(request: CheckoutRequest) -> CheckoutResult:
    """Open (or reuse) the entity's intent and obtain its hosted invoice."""
    settings = get_settings()
    gateway = get_gateway()
    repo = current_domain.repository_for(PaymentIntent)

    replaced = await _expire_replaced_invoice(request)
    if isinstance(replaced, CheckoutResult):
        return replaced

    opened = current_domain.process(
        OpenPaymentIntent(
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            amount=request.amount,
            supersede=request.supersede,
            invoice_expired=replaced,
        ),
        asynchronous=False,
    )
    intent = repo.get(opened.intent_id)
    log = logger.bind(intent_id=opened.intent_id, external_id=intent.external_id)

    if opened.reused and IntentStatus(intent.status) == IntentStatus.PENDING:
        log.info("Returning invoice of open payment intent")
        return _from_intent(intent, reused=True)

    claim = uuid4().hex
    if not current_domain.process(ClaimInvoiceCreation(intent_id=opened.intent_id, claim=claim), asynchronous=False):
        log.info("Invoice creation in flight elsewhere, waiting for it")
        return await _await_in_flight(opened.intent_id)

    invoice_request = _invoice_request(request, intent)
    last_error: GatewayError | None = None

    for attempt in range(1, settings.invoice_create_max_attempts + 1):
        intent = repo.get(opened.intent_id)
        if IntentStatus(intent.status) != IntentStatus.CREATED or intent.creation_claim != claim:
            log.info("Payment intent moved on during invoice creation", status=intent.status)
            return _not_started(intent, intent.cause or CREATION_IN_PROGRESS, f"Payment intent is {intent.status}")

        current_domain.process(RecordInvoiceAttempt(intent_id=opened.intent_id, claim=claim), asynchronous=False)
        result = await gateway.create_invoice(invoice_request)

        if result.success:
            attached = on_invoice_created(
                intent_id=opened.intent_id,
                provider_invoice_id=result.provider_invoice_id,
                hosted_url=result.hosted_url,
                expires_at=result.expiry,
            )
            if attached.kind is ReconciliationKind.CONFLICT:
                return await _discard_orphan_invoice(opened.intent_id, result.provider_invoice_id)
            return _from_intent(repo.get(opened.intent_id), reused=opened.reused)

        last_error = result.error
        if last_error.kind is GatewayErrorKind.REJECTED:
            log.error("Gateway rejected invoice", http_status=last_error.http_status, error=last_error.message)
            return _fail(opened.intent_id, INVALID_REQUEST, last_error)

        log.warning("Invoice creation failed", attempt=attempt, kind=last_error.kind.value, error=last_error.message)
        if attempt < settings.invoice_create_max_attempts:
            await asyncio.sleep(settings.invoice_create_backoff_seconds * 2 ** (attempt - 1))

    log.error("Invoice creation exhausted retries", attempts=settings.invoice_create_max_attempts)
    return _fail(opened.intent_id, GATEWAY_UNAVAILABLE, last_error)
