"""Payments load test scenarios.

Stateful SequentialTaskSet journeys covering the webhook happy path, a
double delivery race (webhook twice plus a poll), a renewal that expires,
and forged webhooks.
"""

import os

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    CALLBACK_TOKEN_ENV,
    booking_data,
    invoice_callback,
    invoice_data,
    subscription_data,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import PaymentState


def _token_header() -> dict:
    return {"X-Callback-Token": os.environ.get(CALLBACK_TOKEN_ENV, "")}


class _PaymentJourney(SequentialTaskSet):
    entity_type = "booking"

    def on_start(self):
        self.state = PaymentState(entity_type=self.entity_type)

    def _create_entity(self):
        path, payload = (
            ("/bookings", booking_data()) if self.entity_type == "booking" else ("/subscriptions", subscription_data())
        )
        with self.client.post(path, json=payload, catch_response=True, name=f"POST {path}") as resp:
            if resp.status_code == 201:
                self.state.entity_id = resp.json()["id"]
            else:
                resp.failure(f"Create {self.entity_type} failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    def _create_invoice(self):
        with self.client.post(
            "/payment/invoices",
            json=invoice_data(self.entity_type, self.state.entity_id),
            catch_response=True,
            name="POST /payment/invoices",
        ) as resp:
            if resp.status_code == 200:
                data = resp.json()
                self.state.intent_id = data["intent_id"]
                self.state.invoice_id = data["invoice_id"]
                self.state.current_status = data["status"]
            else:
                resp.failure(f"Create invoice failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    def _callback(self, status: str, name: str):
        with self.client.post(
            "/payment/webhook",
            json=invoice_callback(self.state.invoice_id, status),
            headers=_token_header(),
            catch_response=True,
            name=name,
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Webhook failed: {resp.status_code} — {extract_error_detail(resp)}")

    def _check_status(self, expected: str):
        with self.client.get(
            f"/payment/status/{self.entity_type}/{self.state.entity_id}",
            catch_response=True,
            name="GET /payment/status/{type}/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Status failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif resp.json()["status"] != expected:
                resp.failure(f"Expected {expected}, got {resp.json()['status']}")


class BookingPaidJourney(_PaymentJourney):
    """Create Booking -> Invoice -> Webhook PAID -> Status."""

    @task
    def create_booking(self):
        self._create_entity()

    @task
    def create_invoice(self):
        self._create_invoice()

    @task
    def webhook_paid(self):
        self._callback("PAID", "POST /payment/webhook (paid)")

    @task
    def check_status(self):
        self._check_status("paid")

    @task
    def done(self):
        self.interrupt()


class DoubleDeliveryJourney(_PaymentJourney):
    """Invoice -> Webhook PAID twice + background poll; the outcome applies once."""

    @task
    def create_booking(self):
        self._create_entity()

    @task
    def create_invoice(self):
        self._create_invoice()

    @task
    def configure_gateway_paid(self):
        self.client.post(
            "/payment/gateway/configure",
            json={"should_succeed": True, "invoice_id": self.state.invoice_id, "invoice_status": "PAID"},
            name="POST /payment/gateway/configure",
        )

    @task
    def race(self):
        self.client.post(
            f"/payment/poll/{self.entity_type}/{self.state.entity_id}",
            name="POST /payment/poll/{type}/{id}",
        )
        self._callback("PAID", "POST /payment/webhook (race)")
        self._callback("PAID", "POST /payment/webhook (duplicate)")

    @task
    def check_status(self):
        self._check_status("paid")

    @task
    def done(self):
        self.interrupt()


class SubscriptionExpiredJourney(_PaymentJourney):
    """Subscription renewal invoice that expires."""

    entity_type = "subscription"

    @task
    def create_subscription(self):
        self._create_entity()

    @task
    def create_invoice(self):
        self._create_invoice()

    @task
    def webhook_expired(self):
        self._callback("EXPIRED", "POST /payment/webhook (expired)")

    @task
    def check_status(self):
        self._check_status("expired")

    @task
    def done(self):
        self.interrupt()


class ForgedWebhookJourney(SequentialTaskSet):
    """Unauthenticated callbacks must be refused with 401."""

    @task
    def forged(self):
        with self.client.post(
            "/payment/webhook",
            json=invoice_callback("inv-forged", "PAID"),
            headers={"X-Callback-Token": "forged"},
            catch_response=True,
            name="POST /payment/webhook (forged)",
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Forged webhook not refused: {resp.status_code}")

    @task
    def done(self):
        self.interrupt()


class PaymentsUser(HttpUser):
    """Locust user simulating payment traffic.

    Weighted distribution:
    - 50% Booking paid via webhook
    - 20% Double delivery race
    - 20% Subscription renewal expired
    - 10% Forged webhook
    """

    wait_time = between(0.5, 2.0)
    tasks = {
        BookingPaidJourney: 5,
        DoubleDeliveryJourney: 2,
        SubscriptionExpiredJourney: 2,
        ForgedWebhookJourney: 1,
    }
