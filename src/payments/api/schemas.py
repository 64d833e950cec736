"""Pydantic request/response schemas for the Payments API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, Field

EntityTypeLiteral = Literal["booking", "subscription"]


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class CreateInvoiceRequest(BaseModel):
    entity_type: EntityTypeLiteral
    entity_id: str
    payer_email: str
    description: str
    amount: float | None = Field(default=None, gt=0)
    customer_name: str | None = None
    success_redirect_url: AnyHttpUrl | None = None
    failure_redirect_url: AnyHttpUrl | None = None
    supersede: bool = False
    preferred_payment_method: str | None = Field(default=None, max_length=50)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "entity_type": "booking",
                    "entity_id": "bk-001",
                    "payer_email": "juan@example.ph",
                    "description": "Regular Wash - SUV",
                    "amount": 390.0,
                    "preferred_payment_method": "gcash",
                    "success_redirect_url": "https://carwash.example.ph/booking-success?bookingId=bk-001",
                    "failure_redirect_url": "https://carwash.example.ph/booking-failed?bookingId=bk-001",
                }
            ]
        }
    }


class InvoiceCallback(BaseModel):
    """Invoice callback envelope posted by the gateway."""

    id: str
    status: str
    external_id: str | None = None
    amount: float | None = None
    paid_amount: float | None = None
    payment_method: str | None = None
    paid_at: str | None = None

    model_config = {"extra": "allow"}


class ChargeCardRequest(BaseModel):
    token_id: str
    external_id: str
    amount: float = Field(gt=0)
    description: str
    authentication_id: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_kind: Literal["timeout", "unavailable", "rejected"] = "unavailable"
    failure_reason: str = "Gateway unavailable"
    invoice_id: str | None = None
    invoice_status: str | None = None


class CreateBookingRequest(BaseModel):
    customer_email: str
    customer_name: str | None = None
    service_id: str
    vehicle_type: str
    motorcycle_subtype: str | None = None
    base_price: float | None = Field(default=None, gt=0)


class CreateSubscriptionRequest(BaseModel):
    customer_email: str
    customer_name: str | None = None
    package_name: str
    monthly_price: float = Field(gt=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class CreateInvoiceResponse(BaseModel):
    success: bool
    intent_id: str
    status: str
    invoice_id: str | None = None
    hosted_url: str | None = None
    expiry: datetime | None = None
    reused: bool = False
    error: str | None = None


class PaymentStatusResponse(BaseModel):
    entity_type: str
    entity_id: str
    intent_id: str
    external_id: str
    status: str
    amount: float
    currency: str
    provider_invoice_id: str | None = None
    hosted_url: str | None = None
    attempts: int
    cause: str | None = None
    last_transition_at: datetime | None = None


class PollStartedResponse(BaseModel):
    status: str
    intent_status: str


class WebhookResponse(BaseModel):
    success: bool
    result: str
    duplicate_event: bool = False


class PaymentMethodResponse(BaseModel):
    id: str
    label: str


class PaymentMethodsResponse(BaseModel):
    success: bool = True
    methods: list[PaymentMethodResponse]
    source: str


class CardChargeResponse(BaseModel):
    success: bool
    charge_id: str | None = None
    status: str | None = None
    amount: float | None = None
    error: str | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_kind: str
    failure_reason: str


class IdResponse(BaseModel):
    id: str


class BookingResponse(BaseModel):
    id: str
    customer_email: str
    service_id: str
    vehicle_type: str
    motorcycle_subtype: str | None = None
    base_price: float
    total_price: float
    payment_status: str
    provider_invoice_id: str | None = None


class SubscriptionResponse(BaseModel):
    id: str
    customer_email: str
    package_name: str
    monthly_price: float
    status: str
    auto_renew: bool
    renewal_date: datetime | None = None
    usage_count: int
    last_payment_status: str | None = None
