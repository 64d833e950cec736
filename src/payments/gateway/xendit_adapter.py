"""Xendit invoice gateway adapter.

Talks to the Xendit Invoice API v2 over httpx:
- POST {api}/invoices opens a hosted invoice
- GET  {api}/invoices/{id} reads its status
- POST {api}/invoices/{id}/expire! closes an unpaid invoice
- POST {api}/credit_card_charges charges a tokenized card
- GET  {api}/invoices/available_payment_methods lists payment methods

Authentication is HTTP Basic with the secret key as username and an empty
password. Every call is bounded by the configured timeout. Transport
failures and provider 5xx responses are reported as retryable errors; 4xx
responses are rejections and carry the HTTP status.
"""

from datetime import datetime
from decimal import Decimal

import httpx
import structlog

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

logger = structlog.get_logger(__name__)


def _parse_expiry(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable invoice expiry", expiry_date=value)
        return None


def _parse_methods(data) -> list[PaymentMethod]:
    """Normalize the provider's method list, whatever envelope it comes in."""
    if isinstance(data, dict):
        data = data.get("available_payment_methods") or data.get("payment_methods") or []

    methods = []
    for item in data or []:
        if not isinstance(item, dict):
            continue
        method_id = str(
            item.get("code") or item.get("id") or item.get("payment_method") or item.get("type") or item.get("name") or ""
        ).lower()
        if not method_id:
            continue
        label = item.get("name") or item.get("display_name") or item.get("label") or method_id
        methods.append(PaymentMethod(id=method_id, label=str(label)))
    return methods


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    return body.get("message") or body.get("error_code") or f"HTTP {response.status_code}"


class XenditGateway(InvoiceGateway):
    """Production Xendit gateway adapter."""

    def __init__(
        self,
        secret_key: str,
        api_url: str = "https://api.xendit.co/v2",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

    @staticmethod
    def _invoice_payload(request: InvoiceRequest) -> dict:
        amount = float(request.amount)
        item_name = request.item_name or request.description
        payload = {
            "external_id": request.external_id,
            "amount": amount,
            "payer_email": request.payer_email,
            "description": request.description,
            "customer": {
                "given_names": request.customer_name or "Customer",
                "email": request.payer_email,
            },
            "currency": request.currency,
            "invoice_duration": request.invoice_duration_seconds,
            "items": [{"name": item_name, "quantity": 1, "price": amount}],
        }
        if request.success_redirect_url:
            payload["success_redirect_url"] = request.success_redirect_url
        if request.failure_redirect_url:
            payload["failure_redirect_url"] = request.failure_redirect_url
        if request.preferred_payment_method:
            payload["metadata"] = {"preferred_payment_method": request.preferred_payment_method}
        return payload

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response | GatewayError:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Xendit request timed out", method=method, path=path)
            return GatewayError(kind=GatewayErrorKind.TIMEOUT, message=str(exc) or "Request timed out")
        except httpx.HTTPError as exc:
            logger.warning("Xendit transport error", method=method, path=path, error=str(exc))
            return GatewayError(kind=GatewayErrorKind.UNAVAILABLE, message=str(exc) or type(exc).__name__)

    @staticmethod
    def _classify(response: httpx.Response) -> GatewayError | None:
        if response.is_success:
            return None
        kind = GatewayErrorKind.REJECTED if response.status_code < 500 else GatewayErrorKind.UNAVAILABLE
        return GatewayError(kind=kind, message=_error_message(response), http_status=response.status_code)

    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        outcome = await self._send("POST", "/invoices", json=self._invoice_payload(request))
        if isinstance(outcome, GatewayError):
            return InvoiceResult(success=False, error=outcome)

        error = self._classify(outcome)
        if error is not None:
            logger.error(
                "Xendit rejected invoice creation",
                external_id=request.external_id,
                http_status=error.http_status,
                error=error.message,
            )
            return InvoiceResult(success=False, error=error)

        data = outcome.json()
        logger.info("Xendit invoice created", external_id=request.external_id, provider_invoice_id=data.get("id"))
        return InvoiceResult(
            success=True,
            provider_invoice_id=data["id"],
            hosted_url=data.get("invoice_url"),
            expiry=_parse_expiry(data.get("expiry_date")),
        )

    async def get_invoice_status(self, provider_invoice_id: str) -> InvoiceStatusResult:
        outcome = await self._send("GET", f"/invoices/{provider_invoice_id}")
        if isinstance(outcome, GatewayError):
            return InvoiceStatusResult(success=False, error=outcome)

        error = self._classify(outcome)
        if error is not None:
            return InvoiceStatusResult(success=False, error=error)

        status = outcome.json().get("status")
        return InvoiceStatusResult(success=True, outcome=map_provider_status(status), provider_status=status)

    async def expire_invoice(self, provider_invoice_id: str) -> InvoiceStatusResult:
        outcome = await self._send("POST", f"/invoices/{provider_invoice_id}/expire!")
        if isinstance(outcome, GatewayError):
            return InvoiceStatusResult(success=False, error=outcome)

        error = self._classify(outcome)
        if error is not None:
            logger.warning(
                "Xendit refused to expire invoice",
                provider_invoice_id=provider_invoice_id,
                http_status=error.http_status,
                error=error.message,
            )
            return InvoiceStatusResult(success=False, error=error)

        status = outcome.json().get("status")
        logger.info("Xendit invoice expired", provider_invoice_id=provider_invoice_id, provider_status=status)
        return InvoiceStatusResult(success=True, outcome=map_provider_status(status), provider_status=status)

    async def charge_card(self, request: CardChargeRequest) -> CardChargeResult:
        payload = {
            "token_id": request.token_id,
            "external_id": request.external_id,
            "amount": float(request.amount),
            "description": request.description,
            "currency": request.currency,
        }
        if request.authentication_id:
            payload["authentication_id"] = request.authentication_id

        outcome = await self._send("POST", "/credit_card_charges", json=payload)
        if isinstance(outcome, GatewayError):
            return CardChargeResult(success=False, error=outcome)

        error = self._classify(outcome)
        if error is not None:
            logger.error(
                "Xendit card charge failed",
                external_id=request.external_id,
                http_status=error.http_status,
                error=error.message,
            )
            return CardChargeResult(success=False, error=error)

        data = outcome.json()
        amount = data.get("amount")
        return CardChargeResult(
            success=True,
            charge_id=data.get("id"),
            status=data.get("status"),
            amount=Decimal(str(amount)) if amount is not None else None,
        )

    async def list_payment_methods(self) -> PaymentMethodsResult:
        outcome = await self._send("GET", "/invoices/available_payment_methods")
        if isinstance(outcome, GatewayError):
            return PaymentMethodsResult(success=False, error=outcome)

        error = self._classify(outcome)
        if error is not None:
            return PaymentMethodsResult(success=False, error=error)

        try:
            data = outcome.json()
        except ValueError:
            return PaymentMethodsResult(
                success=False,
                error=GatewayError(kind=GatewayErrorKind.UNAVAILABLE, message="Unreadable payment methods response"),
            )
        return PaymentMethodsResult(success=True, methods=tuple(_parse_methods(data)))
