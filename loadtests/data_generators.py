"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that match the exact field names expected
by the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

SERVICES = ["classic", "regular", "vip_pro", "vip_pro_max"]
VEHICLES = ["sedan", "suv", "van", "pickup", "motorcycle"]
MOTORCYCLE_SUBTYPES = ["small", "medium", "big"]
CALLBACK_TOKEN_ENV = "XENDIT_CALLBACK_TOKEN"


def valid_email() -> str:
    local = fake.user_name()[:20]
    return f"{local}.{uuid.uuid4().hex[:4]}@{fake.free_email_domain()}"


def booking_data() -> dict:
    """Generate CreateBookingRequest payload."""
    vehicle = random.choice(VEHICLES)
    return {
        "customer_email": valid_email(),
        "customer_name": fake.name(),
        "service_id": random.choice(SERVICES),
        "vehicle_type": vehicle,
        "motorcycle_subtype": random.choice(MOTORCYCLE_SUBTYPES) if vehicle == "motorcycle" else None,
    }


def subscription_data() -> dict:
    """Generate CreateSubscriptionRequest payload."""
    return {
        "customer_email": valid_email(),
        "customer_name": fake.name(),
        "package_name": random.choice(["Classic Monthly", "VIP Pro Monthly", "VIP Pro Max Monthly"]),
        "monthly_price": random.choice([999.0, 1499.0, 2499.0]),
    }


def invoice_data(entity_type: str, entity_id: str, email: str | None = None) -> dict:
    """Generate CreateInvoiceRequest payload."""
    page = "booking" if entity_type == "booking" else "subscription-renewal"
    param = "bookingId" if entity_type == "booking" else "subscriptionId"
    return {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "payer_email": email or valid_email(),
        "description": f"Car wash {entity_type} payment",
        "success_redirect_url": f"https://carwash.example.ph/{page}-success?{param}={entity_id}",
        "failure_redirect_url": f"https://carwash.example.ph/{page}-failed?{param}={entity_id}",
    }


def invoice_callback(invoice_id: str, status: str = "PAID", external_id: str | None = None) -> dict:
    """Generate an invoice callback payload as the gateway posts it."""
    return {
        "id": invoice_id,
        "external_id": external_id,
        "status": status,
        "payment_method": random.choice(["EWALLET", "CREDIT_CARD", "BANK_TRANSFER"]),
        "paid_at": fake.iso8601() if status in ("PAID", "SETTLED") else None,
    }
