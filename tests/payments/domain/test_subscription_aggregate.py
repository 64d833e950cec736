"""Tests for the Subscription aggregate."""

from datetime import UTC, datetime

import pytest
from payments.subscription.subscription import Subscription, SubscriptionStatus, add_one_month
from protean.exceptions import ValidationError


def _subscription(**overrides):
    data = {"customer_email": "m@example.ph", "package_name": "VIP Monthly", "monthly_price": 1200.0}
    data.update(overrides)
    return Subscription.create(**data)


class TestAddOneMonth:
    def test_mid_month(self):
        assert add_one_month(datetime(2026, 3, 15, tzinfo=UTC)) == datetime(2026, 4, 15, tzinfo=UTC)

    def test_clamps_to_month_end(self):
        assert add_one_month(datetime(2026, 1, 31, tzinfo=UTC)) == datetime(2026, 2, 28, tzinfo=UTC)

    def test_year_rollover(self):
        assert add_one_month(datetime(2026, 12, 10, tzinfo=UTC)) == datetime(2027, 1, 10, tzinfo=UTC)


class TestSubscriptionCreation:
    def test_starts_pending_with_auto_renew(self):
        subscription = _subscription()
        assert subscription.status == SubscriptionStatus.PENDING.value
        assert subscription.auto_renew is True
        assert subscription.usage_count == 0

    def test_rejects_non_positive_price(self):
        with pytest.raises(ValidationError):
            _subscription(monthly_price=0)


class TestRenewalPayment:
    def test_paid_activates_and_advances_renewal(self):
        subscription = _subscription()
        subscription.renewal_date = datetime(2026, 5, 20, tzinfo=UTC)
        subscription.apply_payment_result("paid", "inv-1", datetime.now(UTC))
        assert subscription.status == "active"
        assert subscription.renewal_date == datetime(2026, 6, 20, tzinfo=UTC)
        assert subscription.usage_count == 1
        assert subscription.last_payment_status == "paid"

    def test_failed_pauses_and_disables_auto_renew(self):
        subscription = _subscription()
        subscription.apply_payment_result("failed", "inv-1", datetime.now(UTC))
        assert subscription.status == "paused"
        assert subscription.auto_renew is False

    def test_expired_pauses(self):
        subscription = _subscription()
        subscription.apply_payment_result("expired", None, datetime.now(UTC))
        assert subscription.status == "paused"

    def test_non_terminal_rejected(self):
        with pytest.raises(ValidationError):
            _subscription().apply_payment_result("pending", None, datetime.now(UTC))

    def test_superseded_expiry_leaves_subscription_unchanged(self):
        subscription = _subscription()
        subscription.apply_payment_result("expired", "inv-1", datetime.now(UTC), cause="superseded")
        assert subscription.status == "pending"
        assert subscription.auto_renew is True
        assert subscription.last_payment_status is None
