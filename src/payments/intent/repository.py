"""Repository for the PaymentIntent aggregate."""

from payments.domain import payments
from payments.intent.intent import PaymentIntent


@payments.repository(part_of=PaymentIntent)
class PaymentIntentRepository:
    """Lookups used by reconciliation and the status endpoints."""

    def find_by_provider_invoice(self, provider_invoice_id: str) -> PaymentIntent | None:
        items = self._dao.query.filter(provider_invoice_id=provider_invoice_id).all().items
        return items[0] if items else None

    def for_entity(self, entity_type: str, entity_id: str) -> list[PaymentIntent]:
        """All intents of an entity, oldest first."""
        items = self._dao.query.filter(entity_type=entity_type, entity_id=str(entity_id)).all().items
        return sorted(items, key=lambda intent: (intent.created_at, intent.external_id))

    def latest_for_entity(self, entity_type: str, entity_id: str) -> PaymentIntent | None:
        intents = self.for_entity(entity_type, entity_id)
        return intents[-1] if intents else None

    def find_open_for_entity(self, entity_type: str, entity_id: str) -> PaymentIntent | None:
        """The non-terminal intent of an entity, if any."""
        for intent in reversed(self.for_entity(entity_type, entity_id)):
            if not intent.is_terminal:
                return intent
        return None
