"""Subscription aggregate — a monthly wash package renewed by payment.

A paid renewal activates the subscription and pushes the renewal date one
calendar month forward. A failed or expired renewal pauses it and turns off
auto-renew. Replacing a renewal invoice with a new one changes nothing.
"""

import calendar
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from payments.domain import payments


class SubscriptionStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"


def add_one_month(moment: datetime) -> datetime:
    """Same day next month, clamped to the last day of a shorter month."""
    year = moment.year + (1 if moment.month == 12 else 0)
    month = 1 if moment.month == 12 else moment.month + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


@payments.aggregate
class Subscription:
    customer_email = String(required=True, max_length=254)
    customer_name = String(max_length=150)
    package_name = String(required=True, max_length=100)
    monthly_price = Float(required=True)
    status = String(
        choices=SubscriptionStatus,
        default=SubscriptionStatus.PENDING.value,
    )
    auto_renew = Boolean(default=True)
    renewal_date = DateTime()
    usage_count = Integer(default=0)
    last_payment_status = String(max_length=20)
    provider_invoice_id = String(max_length=255)
    payment_updated_at = DateTime()
    created_at = DateTime()

    @classmethod
    def create(cls, customer_email: str, package_name: str, monthly_price: float, customer_name: str | None = None):
        if monthly_price <= 0:
            raise ValidationError({"monthly_price": ["Monthly price must be positive"]})
        now = datetime.now(UTC)
        return cls(
            customer_email=customer_email,
            customer_name=customer_name,
            package_name=package_name,
            monthly_price=monthly_price,
            renewal_date=now,
            created_at=now,
        )

    def apply_payment_result(
        self,
        status: str,
        provider_invoice_id: str | None,
        settled_at: datetime,
        cause: str | None = None,
    ) -> None:
        """Record the outcome of a terminal renewal payment intent.

        An intent expired because it was superseded is not a renewal
        outcome and leaves the subscription as it is.
        """
        if status == "expired" and cause == "superseded":
            return

        if status == "paid":
            self.status = SubscriptionStatus.ACTIVE.value
            self.renewal_date = add_one_month(self.renewal_date or settled_at)
            self.usage_count = (self.usage_count or 0) + 1
        elif status in ("failed", "expired"):
            self.status = SubscriptionStatus.PAUSED.value
            self.auto_renew = False
        else:
            raise ValidationError({"status": [f"{status} is not a settled payment status"]})

        self.last_payment_status = status
        self.provider_invoice_id = provider_invoice_id
        self.payment_updated_at = settled_at
