"""Fake realtime adapter — records published events for testing."""

from uuid import uuid4

from payments.notification.realtime_port import RealtimePort


class FakeRealtimeAdapter(RealtimePort):
    """Realtime adapter that records events in memory for test assertions."""

    def __init__(self):
        self.published: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Realtime delivery failed"

    def configure(self, should_succeed: bool = True, should_raise: bool = False, failure_reason: str = "Realtime delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.should_raise = should_raise
        self.failure_reason = failure_reason

    def publish(self, channels: list[str], event_name: str, payload: dict) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"rt-{uuid4().hex[:12]}"
        self.published.append(
            {
                "message_id": message_id,
                "channels": list(channels),
                "event_name": event_name,
                "payload": payload,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear published events (useful between tests)."""
        self.published.clear()
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Realtime delivery failed"
