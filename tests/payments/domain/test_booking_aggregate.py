"""Tests for the Booking aggregate."""

from datetime import UTC, datetime

import pytest
from payments.booking.booking import Booking, BookingPaymentStatus
from protean.exceptions import ValidationError


class TestBookingCreation:
    def test_prices_from_service_and_vehicle(self):
        booking = Booking.create(customer_email="a@example.ph", service_id="regular", vehicle_type="suv")
        assert booking.base_price == 300.0
        assert booking.total_price == 390.0
        assert booking.payment_status == BookingPaymentStatus.UNPAID.value

    def test_explicit_base_price(self):
        booking = Booking.create(
            customer_email="a@example.ph",
            service_id="custom",
            vehicle_type="motorcycle",
            motorcycle_subtype="big",
            base_price=1000,
        )
        assert booking.total_price == 780.0

    def test_unknown_service_without_price(self):
        with pytest.raises(ValidationError):
            Booking.create(customer_email="a@example.ph", service_id="mystery", vehicle_type="sedan")


class TestApplyPaymentResult:
    def _booking(self):
        return Booking.create(customer_email="a@example.ph", service_id="classic", vehicle_type="sedan")

    def test_paid(self):
        booking = self._booking()
        now = datetime.now(UTC)
        booking.apply_payment_result("paid", "inv-1", now)
        assert booking.payment_status == "paid"
        assert booking.provider_invoice_id == "inv-1"
        assert booking.payment_updated_at == now

    def test_expired(self):
        booking = self._booking()
        booking.apply_payment_result("expired", "inv-1", datetime.now(UTC))
        assert booking.payment_status == "expired"

    def test_non_terminal_rejected(self):
        with pytest.raises(ValidationError):
            self._booking().apply_payment_result("unpaid", None, datetime.now(UTC))
