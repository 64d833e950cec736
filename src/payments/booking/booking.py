"""Booking aggregate — the car-wash appointment a payment is made for.

Only the fields the payment lifecycle reads or writes are modelled. The
payment-derived fields are written exclusively from a terminal
PaymentIntent via ``apply_payment_result``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, String

from payments.domain import payments
from payments.pricing.charge import compute_charge, price_for_service


class BookingPaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"


_SETTLED_STATUSES = {
    BookingPaymentStatus.PAID,
    BookingPaymentStatus.FAILED,
    BookingPaymentStatus.EXPIRED,
}


@payments.aggregate
class Booking:
    customer_email = String(required=True, max_length=254)
    customer_name = String(max_length=150)
    service_id = String(required=True, max_length=50)
    vehicle_type = String(required=True, max_length=50)
    motorcycle_subtype = String(max_length=50)
    base_price = Float(required=True)
    total_price = Float(required=True)
    payment_status = String(
        choices=BookingPaymentStatus,
        default=BookingPaymentStatus.UNPAID.value,
    )
    provider_invoice_id = String(max_length=255)
    payment_updated_at = DateTime()
    created_at = DateTime()

    @classmethod
    def create(
        cls,
        customer_email: str,
        service_id: str,
        vehicle_type: str,
        customer_name: str | None = None,
        motorcycle_subtype: str | None = None,
        base_price: float | None = None,
    ):
        """Create a booking priced for the given vehicle."""
        if base_price is None:
            try:
                base_price = float(price_for_service(service_id))
            except KeyError:
                raise ValidationError({"service_id": [f"Unknown service: {service_id}"]}) from None

        total = compute_charge(base_price, vehicle_type, motorcycle_subtype)
        return cls(
            customer_email=customer_email,
            customer_name=customer_name,
            service_id=service_id,
            vehicle_type=vehicle_type,
            motorcycle_subtype=motorcycle_subtype,
            base_price=base_price,
            total_price=float(total),
            created_at=datetime.now(UTC),
        )

    def apply_payment_result(
        self,
        status: str,
        provider_invoice_id: str | None,
        settled_at: datetime,
        cause: str | None = None,
    ) -> None:
        """Record the outcome of a terminal payment intent."""
        target = BookingPaymentStatus(status)
        if target not in _SETTLED_STATUSES:
            raise ValidationError({"payment_status": [f"{status} is not a settled payment status"]})
        self.payment_status = target.value
        self.provider_invoice_id = provider_invoice_id
        self.payment_updated_at = settled_at
