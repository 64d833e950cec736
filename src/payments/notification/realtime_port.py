"""Realtime notification port — abstract interface for publishing updates."""

from abc import ABC, abstractmethod


class RealtimePort(ABC):
    """Abstract interface for realtime publish adapters."""

    @abstractmethod
    def publish(self, channels: list[str], event_name: str, payload: dict) -> dict:
        """Publish an event to one or more channels.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
