"""Subscription creation — command and handler."""

from protean import handle
from protean.fields import Float, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.subscription.subscription import Subscription


@payments.command(part_of="Subscription")
class CreateSubscription:
    customer_email = String(required=True, max_length=254)
    customer_name = String(max_length=150)
    package_name = String(required=True, max_length=100)
    monthly_price = Float(required=True)


@payments.command_handler(part_of=Subscription)
class CreateSubscriptionHandler:
    @handle(CreateSubscription)
    def create_subscription(self, command):
        subscription = Subscription.create(
            customer_email=command.customer_email,
            customer_name=command.customer_name,
            package_name=command.package_name,
            monthly_price=command.monthly_price,
        )
        current_domain.repository_for(Subscription).add(subscription)
        return str(subscription.id)
