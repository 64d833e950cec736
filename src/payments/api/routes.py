"""FastAPI routes for the Payments domain — invoices, status, webhooks, card charges."""

import os

import structlog
from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadValidationError
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from payments.api.schemas import (
    BookingResponse,
    CardChargeResponse,
    ChargeCardRequest,
    ConfigureGatewayRequest,
    CreateBookingRequest,
    CreateInvoiceRequest,
    CreateInvoiceResponse,
    CreateSubscriptionRequest,
    EntityTypeLiteral,
    GatewayConfigResponse,
    IdResponse,
    InvoiceCallback,
    PaymentMethodResponse,
    PaymentMethodsResponse,
    PaymentStatusResponse,
    PollStartedResponse,
    SubscriptionResponse,
    WebhookResponse,
)
from payments.booking.booking import Booking
from payments.booking.creation import CreateBooking
from payments.checkout.card import charge_card
from payments.checkout.initiation import (
    ALREADY_PAID,
    CREATION_IN_PROGRESS,
    GATEWAY_UNAVAILABLE,
    SUPERSEDE_REFUSED,
    CheckoutRequest,
    start_payment,
)
from payments.checkout.methods import available_methods
from payments.domain import payments
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway
from payments.intent.intent import PaymentIntent
from payments.intent.opening import SUPERSEDED
from payments.polling.poller import poll_until_terminal
from payments.subscription.creation import CreateSubscription
from payments.subscription.subscription import Subscription
from payments.webhook.receiver import authenticate, process_invoice_callback

logger = structlog.get_logger(__name__)

_CONFLICTING_CAUSES = {ALREADY_PAID, CREATION_IN_PROGRESS, SUPERSEDE_REFUSED, SUPERSEDED}


def _latest_intent(entity_type: str, entity_id: str) -> PaymentIntent:
    intent = current_domain.repository_for(PaymentIntent).latest_for_entity(entity_type, entity_id)
    if intent is None:
        raise HTTPException(status_code=404, detail=f"No payment for {entity_type} {entity_id}")
    return intent


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payment", tags=["payment"])


@payment_router.post("/invoices", response_model=CreateInvoiceResponse)
async def create_invoice(body: CreateInvoiceRequest):
    """Open (or reuse) the entity's payment intent and return its hosted invoice."""
    try:
        result = await start_payment(
            CheckoutRequest(
                entity_type=body.entity_type,
                entity_id=body.entity_id,
                payer_email=body.payer_email,
                description=body.description,
                amount=body.amount,
                customer_name=body.customer_name,
                success_redirect_url=str(body.success_redirect_url) if body.success_redirect_url else None,
                failure_redirect_url=str(body.failure_redirect_url) if body.failure_redirect_url else None,
                supersede=body.supersede,
                preferred_payment_method=body.preferred_payment_method,
            )
        )
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"{body.entity_type} {body.entity_id} not found") from None
    response = CreateInvoiceResponse(
        success=result.success,
        intent_id=result.intent_id,
        status=result.status,
        invoice_id=result.invoice_id,
        hosted_url=result.hosted_url,
        expiry=result.expiry,
        reused=result.reused,
        error=result.error,
    )
    if result.success:
        return response

    if result.cause == GATEWAY_UNAVAILABLE:
        status_code = 502
    elif result.cause in _CONFLICTING_CAUSES:
        status_code = 409
    else:
        status_code = 422
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@payment_router.get("/status/{entity_type}/{entity_id}", response_model=PaymentStatusResponse)
async def payment_status(entity_type: EntityTypeLiteral, entity_id: str) -> PaymentStatusResponse:
    """Current state of the entity's latest payment intent."""
    intent = _latest_intent(entity_type, entity_id)
    return PaymentStatusResponse(
        entity_type=intent.entity_type,
        entity_id=str(intent.entity_id),
        intent_id=str(intent.id),
        external_id=intent.external_id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        provider_invoice_id=intent.provider_invoice_id,
        hosted_url=intent.hosted_url,
        attempts=intent.attempts or 0,
        cause=intent.cause,
        last_transition_at=intent.last_transition_at,
    )


async def _poll_in_background(entity_type: str, entity_id: str) -> None:
    with payments.domain_context():
        outcome = await poll_until_terminal(entity_type, entity_id)
    logger.info("Background poll finished", entity_type=entity_type, entity_id=entity_id, outcome=outcome.value)


@payment_router.post("/poll/{entity_type}/{entity_id}", status_code=202, response_model=PollStartedResponse)
async def start_polling(
    entity_type: EntityTypeLiteral,
    entity_id: str,
    background_tasks: BackgroundTasks,
) -> PollStartedResponse:
    """Poll the gateway for the entity's outcome in the background."""
    intent = _latest_intent(entity_type, entity_id)
    if not intent.is_terminal:
        background_tasks.add_task(_poll_in_background, entity_type, entity_id)
        return PollStartedResponse(status="polling", intent_status=intent.status)
    return PollStartedResponse(status="settled", intent_status=intent.status)


@payment_router.post(
    "/webhook",
    response_model=WebhookResponse,
    openapi_extra={"requestBody": {"content": {"application/json": {"schema": InvoiceCallback.model_json_schema()}}}},
)
async def process_webhook(
    request: Request,
    x_callback_token: str = Header(default=""),
) -> WebhookResponse:
    """Process an invoice callback from the gateway.

    The token is checked before the body is read, so every unauthenticated
    request is refused with 401 and counted, however malformed its body.
    """
    if not authenticate(x_callback_token):
        raise HTTPException(status_code=401, detail="Invalid callback token")

    try:
        body = InvoiceCallback.model_validate_json(await request.body())
    except PayloadValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from None

    try:
        ack = process_invoice_callback(
            provider_invoice_id=body.id,
            provider_status=body.status,
            external_id=body.external_id,
        )
    except Exception as e:
        logger.exception("Webhook processing failed", provider_invoice_id=body.id, error=str(e))
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e

    return WebhookResponse(success=ack.success, result=ack.result, duplicate_event=ack.duplicate_event)


@payment_router.get("/methods", response_model=PaymentMethodsResponse)
async def payment_methods(refresh: bool = False) -> PaymentMethodsResponse:
    """Payment methods to offer at checkout, cached between calls."""
    listing = await available_methods(refresh=refresh)
    return PaymentMethodsResponse(
        methods=[PaymentMethodResponse(id=m.id, label=m.label) for m in listing.methods],
        source=listing.source,
    )


@payment_router.post("/card-charges", response_model=CardChargeResponse)
async def create_card_charge(body: ChargeCardRequest):
    """Charge a tokenized card directly."""
    result = await charge_card(
        token_id=body.token_id,
        external_id=body.external_id,
        amount=body.amount,
        description=body.description,
        authentication_id=body.authentication_id,
    )
    if result.success:
        return CardChargeResponse(
            success=True,
            charge_id=result.charge_id,
            status=result.status,
            amount=float(result.amount) if result.amount is not None else None,
        )

    status_code = result.error.http_status if result.error.http_status else 502
    content = CardChargeResponse(success=False, error=result.error.message).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=content)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It allows toggling invoice creation failures and setting invoice
    statuses for manual API testing.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_kind=body.failure_kind,
        failure_reason=body.failure_reason,
    )
    if body.invoice_id and body.invoice_status:
        gateway.set_status(body.invoice_id, body.invoice_status)

    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_kind=gateway.failure_kind.value,
        failure_reason=gateway.failure_reason,
    )


# ---------------------------------------------------------------------------
# Booking Router
# ---------------------------------------------------------------------------
booking_router = APIRouter(prefix="/bookings", tags=["bookings"])


@booking_router.post("", status_code=201, response_model=IdResponse)
async def create_booking(body: CreateBookingRequest) -> IdResponse:
    """Create a booking priced for the customer's vehicle."""
    booking_id = current_domain.process(
        CreateBooking(
            customer_email=body.customer_email,
            customer_name=body.customer_name,
            service_id=body.service_id,
            vehicle_type=body.vehicle_type,
            motorcycle_subtype=body.motorcycle_subtype,
            base_price=body.base_price,
        ),
        asynchronous=False,
    )
    return IdResponse(id=booking_id)


@booking_router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: str) -> BookingResponse:
    try:
        booking = current_domain.repository_for(Booking).get(booking_id)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Booking {booking_id} not found") from None
    return BookingResponse(
        id=str(booking.id),
        customer_email=booking.customer_email,
        service_id=booking.service_id,
        vehicle_type=booking.vehicle_type,
        motorcycle_subtype=booking.motorcycle_subtype,
        base_price=booking.base_price,
        total_price=booking.total_price,
        payment_status=booking.payment_status,
        provider_invoice_id=booking.provider_invoice_id,
    )


# ---------------------------------------------------------------------------
# Subscription Router
# ---------------------------------------------------------------------------
subscription_router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@subscription_router.post("", status_code=201, response_model=IdResponse)
async def create_subscription(body: CreateSubscriptionRequest) -> IdResponse:
    subscription_id = current_domain.process(
        CreateSubscription(
            customer_email=body.customer_email,
            customer_name=body.customer_name,
            package_name=body.package_name,
            monthly_price=body.monthly_price,
        ),
        asynchronous=False,
    )
    return IdResponse(id=subscription_id)


@subscription_router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(subscription_id: str) -> SubscriptionResponse:
    try:
        subscription = current_domain.repository_for(Subscription).get(subscription_id)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Subscription {subscription_id} not found") from None
    return SubscriptionResponse(
        id=str(subscription.id),
        customer_email=subscription.customer_email,
        package_name=subscription.package_name,
        monthly_price=subscription.monthly_price,
        status=subscription.status,
        auto_renew=subscription.auto_renew,
        renewal_date=subscription.renewal_date,
        usage_count=subscription.usage_count or 0,
        last_payment_status=subscription.last_payment_status,
    )
