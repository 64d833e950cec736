"""Booking creation — command and handler."""

from protean import handle
from protean.fields import Float, String
from protean.utils.globals import current_domain

from payments.booking.booking import Booking
from payments.domain import payments


@payments.command(part_of="Booking")
class CreateBooking:
    customer_email = String(required=True, max_length=254)
    customer_name = String(max_length=150)
    service_id = String(required=True, max_length=50)
    vehicle_type = String(required=True, max_length=50)
    motorcycle_subtype = String(max_length=50)
    base_price = Float()


@payments.command_handler(part_of=Booking)
class CreateBookingHandler:
    @handle(CreateBooking)
    def create_booking(self, command):
        booking = Booking.create(
            customer_email=command.customer_email,
            customer_name=command.customer_name,
            service_id=command.service_id,
            vehicle_type=command.vehicle_type,
            motorcycle_subtype=command.motorcycle_subtype,
            base_price=command.base_price,
        )
        current_domain.repository_for(Booking).add(booking)
        return str(booking.id)
