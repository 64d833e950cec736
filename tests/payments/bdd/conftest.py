"""Shared BDD fixtures and step definitions for the Payments domain."""

import asyncio

from payments.booking.booking import Booking
from payments.booking.creation import CreateBooking
from payments.checkout.initiation import CheckoutRequest, start_payment
from payments.gateway.port import GatewayErrorKind
from payments.intent.intent import PaymentIntent
from payments.webhook.receiver import authenticate, process_invoice_callback
from protean import current_domain
from pytest_bdd import given, parsers, then, when

VALID_TOKEN = "test-callback-token"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a regular wash booking for an SUV", target_fixture="booking_id")
def _booking():
    return current_domain.process(
        CreateBooking(
            customer_email="juan@example.ph",
            customer_name="Juan Dela Cruz",
            service_id="regular",
            vehicle_type="suv",
        ),
        asynchronous=False,
    )


@given(parsers.cfparse("the gateway times out {times:d} times"))
def _gateway_times_out(gateway, times):
    gateway.fail_next_creates(times, GatewayErrorKind.TIMEOUT)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the customer starts payment", target_fixture="checkout")
def _start_payment(booking_id):
    return asyncio.run(
        start_payment(
            CheckoutRequest(
                entity_type="booking",
                entity_id=booking_id,
                payer_email="juan@example.ph",
                description="Regular Wash - SUV",
            )
        )
    )


def _deliver_webhook(checkout, status, token):
    if not authenticate(token):
        return None
    return process_invoice_callback(checkout.invoice_id, status)


@when(parsers.cfparse('the gateway webhook reports "{status}" with a valid token'), target_fixture="webhook_ack")
def _valid_webhook(checkout, status):
    return _deliver_webhook(checkout, status, VALID_TOKEN)


@when(parsers.cfparse('a webhook reports "{status}" with token "{token}"'), target_fixture="webhook_ack")
def _webhook_with_token(checkout, status, token):
    return _deliver_webhook(checkout, status, token)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
def _intent(checkout):
    return current_domain.repository_for(PaymentIntent).get(checkout.intent_id)


@then(parsers.cfparse('the payment intent is "{status}" with an invoice attached'))
def _intent_with_invoice(checkout, status):
    intent = _intent(checkout)
    assert intent.status == status
    assert intent.provider_invoice_id is not None


@then(parsers.cfparse('the payment intent failed with cause "{cause}"'))
def _intent_with_cause(checkout, cause):
    intent = _intent(checkout)
    assert intent.status == "failed"
    assert intent.cause == cause


@then(parsers.cfparse('the payment intent is "{status}"'))
def _intent_status(checkout, status):
    assert _intent(checkout).status == status


@then(parsers.cfparse("the payment intent recorded {count:d} attempts"))
def _intent_attempts(checkout, count):
    assert _intent(checkout).attempts == count


@then(parsers.cfparse('the booking payment status is "{status}"'))
def _booking_status(booking_id, status):
    assert current_domain.repository_for(Booking).get(booking_id).payment_status == status


@then(parsers.cfparse("{count:d} payment notification is published"))
def _notifications(realtime, count):
    assert len(realtime.published) == count


@then("the webhook is refused")
def _webhook_refused(webhook_ack):
    assert webhook_ack is None
