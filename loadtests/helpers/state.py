"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks entity IDs returned by creation endpoints so follow-up
operations can reference them.
"""

from dataclasses import dataclass


@dataclass
class PaymentState:
    """Tracks state for one booking or subscription payment."""

    entity_type: str = "booking"
    entity_id: str | None = None
    intent_id: str | None = None
    invoice_id: str | None = None
    current_status: str = "created"
