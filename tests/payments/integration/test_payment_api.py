"""Integration tests for invoice, status and collaborator endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from payments.api.routes import booking_router, payment_router, subscription_router
from payments.gateway.port import GatewayErrorKind
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(payment_router)
    app.include_router(booking_router)
    app.include_router(subscription_router)
    return TestClient(app)


def _create_booking(client, **overrides):
    body = {
        "customer_email": "juan@example.ph",
        "customer_name": "Juan Dela Cruz",
        "service_id": "regular",
        "vehicle_type": "suv",
    }
    body.update(overrides)
    response = client.post("/bookings", json=body)
    assert response.status_code == 201
    return response.json()["id"]


def _create_invoice(client, entity_id, entity_type="booking", **overrides):
    body = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "payer_email": "juan@example.ph",
        "description": "Regular Wash - SUV",
        "success_redirect_url": f"https://carwash.example.ph/booking-success?bookingId={entity_id}",
        "failure_redirect_url": f"https://carwash.example.ph/booking-failed?bookingId={entity_id}",
    }
    body.update(overrides)
    return client.post("/payment/invoices", json=body)


class TestBookingEndpoints:
    def test_booking_priced_by_vehicle(self, client):
        booking_id = _create_booking(client, service_id="custom", base_price=1000, vehicle_type="motorcycle", motorcycle_subtype="big")
        response = client.get(f"/bookings/{booking_id}")
        assert response.status_code == 200
        assert response.json()["total_price"] == 780.0
        assert response.json()["payment_status"] == "unpaid"

    def test_unknown_booking(self, client):
        assert client.get("/bookings/nope").status_code == 404


class TestCreateInvoice:
    def test_success(self, client):
        booking_id = _create_booking(client)
        response = _create_invoice(client, booking_id)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "pending"
        assert data["invoice_id"].startswith("fake_inv_")
        assert data["hosted_url"].endswith(data["invoice_id"])
        assert data["expiry"] is not None

    def test_gateway_outage_returns_502(self, client, gateway):
        booking_id = _create_booking(client)
        gateway.fail_next_creates(3, GatewayErrorKind.TIMEOUT)
        response = _create_invoice(client, booking_id)

        assert response.status_code == 502
        assert response.json()["success"] is False
        assert response.json()["status"] == "failed"

    def test_rejected_returns_422(self, client, gateway):
        booking_id = _create_booking(client)
        gateway.fail_next_creates(1, GatewayErrorKind.REJECTED, http_status=400)
        response = _create_invoice(client, booking_id)
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_malformed_redirect_url(self, client):
        booking_id = _create_booking(client)
        response = _create_invoice(client, booking_id, success_redirect_url="not a url")
        assert response.status_code == 422

    def test_unknown_entity(self, client):
        response = _create_invoice(client, "missing-booking")
        assert response.status_code == 404

    def test_subscription_invoice(self, client):
        response = client.post(
            "/subscriptions",
            json={"customer_email": "m@example.ph", "package_name": "VIP Monthly", "monthly_price": 1200},
        )
        subscription_id = response.json()["id"]
        response = _create_invoice(client, subscription_id, entity_type="subscription")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_preferred_payment_method_forwarded(self, client, gateway):
        booking_id = _create_booking(client)
        response = _create_invoice(client, booking_id, preferred_payment_method="gcash")
        assert response.status_code == 200
        assert gateway.calls_for("create_invoice")[0]["preferred_payment_method"] == "gcash"

    def test_supersede_refused_when_old_invoice_cannot_be_expired(self, client, gateway):
        booking_id = _create_booking(client)
        first = _create_invoice(client, booking_id).json()
        gateway.fail_next_expires(1)
        gateway.fail_next_status_checks(1)

        response = _create_invoice(client, booking_id, supersede=True)
        assert response.status_code == 409
        assert response.json()["intent_id"] == first["intent_id"]
        assert response.json()["status"] == "pending"

    def test_supersede_of_paid_invoice_returns_409(self, client, gateway):
        booking_id = _create_booking(client)
        first = _create_invoice(client, booking_id).json()
        gateway.set_status(first["invoice_id"], "PAID")

        response = _create_invoice(client, booking_id, supersede=True)
        assert response.status_code == 409
        assert response.json()["status"] == "paid"
        assert client.get(f"/bookings/{booking_id}").json()["payment_status"] == "paid"


class TestPaymentStatus:
    def test_status_after_invoice(self, client):
        booking_id = _create_booking(client)
        invoice = _create_invoice(client, booking_id).json()

        response = client.get(f"/payment/status/booking/{booking_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["provider_invoice_id"] == invoice["invoice_id"]
        assert data["external_id"] == f"BOOKING_{booking_id}"
        assert data["amount"] == 390.0
        assert data["attempts"] == 1

    def test_no_intent(self, client):
        booking_id = _create_booking(client)
        assert client.get(f"/payment/status/booking/{booking_id}").status_code == 404

    def test_invalid_entity_type(self, client):
        assert client.get("/payment/status/voucher/1").status_code == 422


class TestPollEndpoint:
    def test_background_poll_settles_payment(self, client, gateway):
        booking_id = _create_booking(client)
        invoice = _create_invoice(client, booking_id).json()
        gateway.set_status(invoice["invoice_id"], "PAID")

        response = client.post(f"/payment/poll/booking/{booking_id}")
        assert response.status_code == 202
        assert response.json()["status"] == "polling"

        assert client.get(f"/payment/status/booking/{booking_id}").json()["status"] == "paid"
        assert client.get(f"/bookings/{booking_id}").json()["payment_status"] == "paid"


class TestPaymentMethods:
    def test_lists_gateway_methods_then_cache(self, client):
        first = client.get("/payment/methods")
        assert first.status_code == 200
        assert first.json()["source"] == "gateway"
        assert first.json()["methods"][1] == {"id": "gcash", "label": "GCash"}

        assert client.get("/payment/methods").json()["source"] == "cache"
        assert client.get("/payment/methods", params={"refresh": "true"}).json()["source"] == "gateway"

    def test_fallback_when_gateway_down(self, client, gateway):
        gateway.fail_next_method_listings(1)
        data = client.get("/payment/methods").json()
        assert data["success"] is True
        assert data["source"] == "fallback"
        assert "pay_at_counter" in [m["id"] for m in data["methods"]]


def _charge_body(**overrides):
    body = {"token_id": "tok_1", "external_id": "CARD_bk-1", "amount": 390, "description": "Regular Wash"}
    body.update(overrides)
    return body


class TestCardCharges:
    def test_success(self, client):
        response = client.post("/payment/card-charges", json=_charge_body(authentication_id="auth_1"))
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["charge_id"].startswith("fake_chg_")
        assert data["status"] == "CAPTURED"
        assert data["amount"] == 390.0

    def test_decline_uses_provider_status(self, client, gateway):
        gateway.fail_next_charges(1, GatewayErrorKind.REJECTED, http_status=402)
        response = client.post("/payment/card-charges", json=_charge_body())
        assert response.status_code == 402
        assert response.json()["success"] is False
        assert response.json()["error"] == "Simulated rejected"

    def test_outage_returns_502(self, client, gateway):
        gateway.fail_next_charges(1, GatewayErrorKind.UNAVAILABLE, http_status=None)
        response = client.post("/payment/card-charges", json=_charge_body())
        assert response.status_code == 502

    def test_non_positive_amount(self, client):
        assert client.post("/payment/card-charges", json=_charge_body(amount=0)).status_code == 422


class TestGatewayConfigure:
    def test_configure_fake(self, client):
        response = client.post(
            "/payment/gateway/configure",
            json={"should_succeed": False, "failure_kind": "timeout", "failure_reason": "slow"},
        )
        assert response.status_code == 200
        assert response.json()["failure_kind"] == "timeout"

    def test_blocked_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/payment/gateway/configure", json={"should_succeed": True})
        assert response.status_code == 403

    def test_blocked_for_non_fake_gateway(self, client):
        from payments.gateway import set_gateway
        from payments.gateway.xendit_adapter import XenditGateway

        set_gateway(XenditGateway(secret_key="xnd_test_secret"))
        response = client.post("/payment/gateway/configure", json={"should_succeed": True})
        assert response.status_code == 400
