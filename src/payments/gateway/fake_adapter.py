"""Configurable fake invoice gateway for development and testing.

Simulates the provider without any external calls. It can be scripted to
fail the next N calls with a given error kind and to report any status for
an invoice, which makes it useful for:
- Manual API testing via /payment/gateway/configure
- Automated tests of retries, polling and double delivery
- Development without provider credentials
"""

import asyncio
from collections import deque
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from payments.gateway.port import (
    CardChargeRequest,
    CardChargeResult,
    GatewayError,
    GatewayErrorKind,
    InvoiceGateway,
    InvoiceRequest,
    InvoiceResult,
    InvoiceStatusResult,
    PaymentMethod,
    PaymentMethodsResult,
)
from payments.gateway.status_map import map_provider_status

_SETTLED_STATUSES = {"PAID", "SETTLED"}


class FakeGateway(InvoiceGateway):
    """Configurable fake invoice gateway."""

    hosted_base_url = "https://checkout.fake-gateway.test/web"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_kind: GatewayErrorKind = GatewayErrorKind.UNAVAILABLE
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.invoices: dict[str, InvoiceRequest] = {}
        self.statuses: dict[str, str] = {}
        self._create_failures: deque[GatewayError] = deque()
        self._status_failures: deque[GatewayError] = deque()
        self._expire_failures: deque[GatewayError] = deque()
        self._charge_failures: deque[GatewayError] = deque()
        self._method_failures: deque[GatewayError] = deque()
        self.methods: list[PaymentMethod] = [
            PaymentMethod(id="card", label="Credit / Debit Card"),
            PaymentMethod(id="gcash", label="GCash"),
            PaymentMethod(id="paymaya", label="Maya"),
        ]

    def configure(
        self,
        should_succeed: bool,
        failure_kind: str = GatewayErrorKind.UNAVAILABLE.value,
        failure_reason: str = "Gateway unavailable",
    ) -> None:
        """Configure invoice creation behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_kind = GatewayErrorKind(failure_kind)
        self.failure_reason = failure_reason

    def fail_next_creates(
        self,
        times: int,
        kind: GatewayErrorKind = GatewayErrorKind.TIMEOUT,
        http_status: int | None = None,
    ) -> None:
        """Make the next ``times`` create_invoice calls fail with ``kind``."""
        for _ in range(times):
            self._create_failures.append(GatewayError(kind=kind, message=f"Simulated {kind.value}", http_status=http_status))

    def fail_next_status_checks(self, times: int, kind: GatewayErrorKind = GatewayErrorKind.UNAVAILABLE) -> None:
        for _ in range(times):
            self._status_failures.append(GatewayError(kind=kind, message=f"Simulated {kind.value}"))

    def fail_next_expires(self, times: int, kind: GatewayErrorKind = GatewayErrorKind.UNAVAILABLE) -> None:
        for _ in range(times):
            self._expire_failures.append(GatewayError(kind=kind, message=f"Simulated {kind.value}"))

    def fail_next_charges(
        self,
        times: int,
        kind: GatewayErrorKind = GatewayErrorKind.REJECTED,
        http_status: int | None = 400,
    ) -> None:
        for _ in range(times):
            self._charge_failures.append(GatewayError(kind=kind, message=f"Simulated {kind.value}", http_status=http_status))

    def fail_next_method_listings(self, times: int, kind: GatewayErrorKind = GatewayErrorKind.UNAVAILABLE) -> None:
        for _ in range(times):
            self._method_failures.append(GatewayError(kind=kind, message=f"Simulated {kind.value}"))

    def set_status(self, provider_invoice_id: str, status: str) -> None:
        """Set the provider-side status reported for an invoice."""
        self.statuses[provider_invoice_id] = status

    def calls_for(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        self.calls.append(
            {
                "method": "create_invoice",
                "external_id": request.external_id,
                "amount": request.amount,
                "currency": request.currency,
                "preferred_payment_method": request.preferred_payment_method,
            }
        )
        await asyncio.sleep(0)

        if self._create_failures:
            return InvoiceResult(success=False, error=self._create_failures.popleft())
        if not self.should_succeed:
            return InvoiceResult(
                success=False,
                error=GatewayError(
                    kind=self.failure_kind,
                    message=self.failure_reason,
                    http_status=400 if self.failure_kind is GatewayErrorKind.REJECTED else None,
                ),
            )

        invoice_id = f"fake_inv_{uuid4().hex[:16]}"
        self.invoices[invoice_id] = request
        self.statuses[invoice_id] = "PENDING"
        return InvoiceResult(
            success=True,
            provider_invoice_id=invoice_id,
            hosted_url=f"{self.hosted_base_url}/{invoice_id}",
            expiry=datetime.now(UTC) + timedelta(seconds=request.invoice_duration_seconds),
        )

    async def get_invoice_status(self, provider_invoice_id: str) -> InvoiceStatusResult:
        self.calls.append({"method": "get_invoice_status", "provider_invoice_id": provider_invoice_id})
        await asyncio.sleep(0)

        if self._status_failures:
            return InvoiceStatusResult(success=False, error=self._status_failures.popleft())
        if provider_invoice_id not in self.statuses:
            return InvoiceStatusResult(
                success=False,
                error=GatewayError(
                    kind=GatewayErrorKind.REJECTED,
                    message=f"Invoice {provider_invoice_id} not found",
                    http_status=404,
                ),
            )

        status = self.statuses[provider_invoice_id]
        return InvoiceStatusResult(success=True, outcome=map_provider_status(status), provider_status=status)

    async def expire_invoice(self, provider_invoice_id: str) -> InvoiceStatusResult:
        self.calls.append({"method": "expire_invoice", "provider_invoice_id": provider_invoice_id})
        await asyncio.sleep(0)

        if self._expire_failures:
            return InvoiceStatusResult(success=False, error=self._expire_failures.popleft())
        if provider_invoice_id not in self.statuses:
            return InvoiceStatusResult(
                success=False,
                error=GatewayError(
                    kind=GatewayErrorKind.REJECTED,
                    message=f"Invoice {provider_invoice_id} not found",
                    http_status=404,
                ),
            )
        if self.statuses[provider_invoice_id].upper() in _SETTLED_STATUSES:
            return InvoiceStatusResult(
                success=False,
                provider_status=self.statuses[provider_invoice_id],
                error=GatewayError(
                    kind=GatewayErrorKind.REJECTED,
                    message=f"Invoice {provider_invoice_id} is already paid",
                    http_status=400,
                ),
            )

        self.statuses[provider_invoice_id] = "EXPIRED"
        return InvoiceStatusResult(success=True, outcome=map_provider_status("EXPIRED"), provider_status="EXPIRED")

    async def charge_card(self, request: CardChargeRequest) -> CardChargeResult:
        self.calls.append(
            {
                "method": "charge_card",
                "external_id": request.external_id,
                "token_id": request.token_id,
                "amount": request.amount,
            }
        )
        await asyncio.sleep(0)

        if self._charge_failures:
            return CardChargeResult(success=False, error=self._charge_failures.popleft())
        return CardChargeResult(
            success=True,
            charge_id=f"fake_chg_{uuid4().hex[:16]}",
            status="CAPTURED",
            amount=request.amount,
        )

    async def list_payment_methods(self) -> PaymentMethodsResult:
        self.calls.append({"method": "list_payment_methods"})
        await asyncio.sleep(0)

        if self._method_failures:
            return PaymentMethodsResult(success=False, error=self._method_failures.popleft())
        return PaymentMethodsResult(success=True, methods=tuple(self.methods))
