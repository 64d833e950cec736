import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

CALLBACK_TOKEN = "test-callback-token"


@pytest.fixture(scope="session")
def payments_bed():
    from payments.domain import payments

    bed = DomainFixture(payments)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(payments_bed):
    with payments_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def settings():
    from payments.config import PaymentSettings, reset_settings, set_settings

    test_settings = PaymentSettings(
        xendit_callback_token=CALLBACK_TOKEN,
        invoice_create_backoff_seconds=0,
        poll_max_attempts=5,
        poll_interval_ms=0,
    )
    set_settings(test_settings)
    yield test_settings
    reset_settings()


@pytest.fixture(autouse=True)
def gateway():
    from payments.gateway import reset_gateway, set_gateway
    from payments.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture(autouse=True)
def realtime():
    from payments.notification import reset_realtime, set_realtime
    from payments.notification.fake_realtime import FakeRealtimeAdapter

    fake = FakeRealtimeAdapter()
    set_realtime(fake)
    yield fake
    reset_realtime()


@pytest.fixture(autouse=True)
def _reset_methods_cache():
    from payments.checkout.methods import clear_methods_cache

    clear_methods_cache()
    yield
    clear_methods_cache()


@pytest.fixture(autouse=True)
def _reset_webhook_counter():
    from payments.webhook.receiver import reset_rejected_count

    reset_rejected_count()
    yield


@pytest.fixture()
def booking_id():
    """A regular wash booking for an SUV (total 390.00)."""
    from payments.booking.creation import CreateBooking

    return current_domain.process(
        CreateBooking(
            customer_email="juan@example.ph",
            customer_name="Juan Dela Cruz",
            service_id="regular",
            vehicle_type="suv",
        ),
        asynchronous=False,
    )


@pytest.fixture()
def subscription_id():
    from payments.subscription.creation import CreateSubscription

    return current_domain.process(
        CreateSubscription(
            customer_email="maria@example.ph",
            customer_name="Maria Santos",
            package_name="VIP Pro Monthly",
            monthly_price=1200.0,
        ),
        asynchronous=False,
    )
