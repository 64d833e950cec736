"""Realtime adapter registry.

Uses the fake adapter by default; a hosted realtime service adapter can be
installed with set_realtime() at startup.
"""

from payments.notification.fake_realtime import FakeRealtimeAdapter
from payments.notification.realtime_port import RealtimePort

_current_realtime: RealtimePort | None = None


def get_realtime() -> RealtimePort:
    global _current_realtime
    if _current_realtime is None:
        _current_realtime = FakeRealtimeAdapter()
    return _current_realtime


def set_realtime(adapter: RealtimePort) -> None:
    global _current_realtime
    _current_realtime = adapter


def reset_realtime() -> None:
    global _current_realtime
    _current_realtime = None
