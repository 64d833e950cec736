"""Invoice gateway port (abstract interface).

Defines the contract that invoice gateway adapters must implement, so the
FakeGateway (dev/test) and XenditGateway (production) are interchangeable
without changing any domain or application code. Besides hosted invoices,
adapters expire invoices, charge tokenized cards and list the payment
methods on offer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class GatewayErrorKind(Enum):
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    REJECTED = "rejected"

    @property
    def retryable(self) -> bool:
        return self is not GatewayErrorKind.REJECTED


class Outcome(Enum):
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    STILL_PENDING = "still_pending"

    @property
    def is_definitive(self) -> bool:
        return self is not Outcome.STILL_PENDING


@dataclass(frozen=True)
class GatewayError:
    """A failed gateway call. ``http_status`` is set for rejections."""

    kind: GatewayErrorKind
    message: str
    http_status: int | None = None


@dataclass(frozen=True)
class InvoiceRequest:
    """Everything the gateway needs to open a hosted invoice."""

    external_id: str
    amount: Decimal
    currency: str
    payer_email: str
    description: str
    invoice_duration_seconds: int
    customer_name: str | None = None
    item_name: str | None = None
    success_redirect_url: str | None = None
    failure_redirect_url: str | None = None
    preferred_payment_method: str | None = None


@dataclass(frozen=True)
class InvoiceResult:
    success: bool
    provider_invoice_id: str | None = None
    hosted_url: str | None = None
    expiry: datetime | None = None
    error: GatewayError | None = None


@dataclass(frozen=True)
class InvoiceStatusResult:
    success: bool
    outcome: Outcome | None = None
    provider_status: str | None = None
    error: GatewayError | None = None


@dataclass(frozen=True)
class CardChargeRequest:
    """A direct charge of a tokenized card."""

    token_id: str
    external_id: str
    amount: Decimal
    currency: str
    description: str
    authentication_id: str | None = None


@dataclass(frozen=True)
class CardChargeResult:
    success: bool
    charge_id: str | None = None
    status: str | None = None
    amount: Decimal | None = None
    error: GatewayError | None = None


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    label: str


@dataclass(frozen=True)
class PaymentMethodsResult:
    success: bool
    methods: tuple[PaymentMethod, ...] = ()
    error: GatewayError | None = None


class InvoiceGateway(ABC):
    """Abstract invoice gateway interface."""

    @abstractmethod
    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        """Open a hosted invoice with the provider."""
        ...

    @abstractmethod
    async def get_invoice_status(self, provider_invoice_id: str) -> InvoiceStatusResult:
        """Fetch the current status of a provider invoice."""
        ...

    @abstractmethod
    async def expire_invoice(self, provider_invoice_id: str) -> InvoiceStatusResult:
        """Expire a hosted invoice so it can no longer be paid."""
        ...

    @abstractmethod
    async def charge_card(self, request: CardChargeRequest) -> CardChargeResult:
        """Charge a tokenized card directly."""
        ...

    @abstractmethod
    async def list_payment_methods(self) -> PaymentMethodsResult:
        """Payment methods the provider currently offers."""
        ...
