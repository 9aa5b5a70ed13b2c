"""Notification dispatcher factory.

Builds the dispatcher the API hands to checkout services:
- LoggingDispatcher by default, wrapped in a BackgroundDispatcher
- RecordingDispatcher for development and tests (injected directly)
"""

from notifications.background import BackgroundDispatcher
from notifications.logging_adapter import LoggingDispatcher
from notifications.port import DispatchFailed, NotificationDispatcher
from notifications.recording import RecordingDispatcher

__all__ = [
    "BackgroundDispatcher",
    "DispatchFailed",
    "LoggingDispatcher",
    "NotificationDispatcher",
    "RecordingDispatcher",
    "build_dispatcher",
]


def build_dispatcher(workers: int = 4) -> NotificationDispatcher:
    """Default production dispatcher: structured log lines, written off the request path."""
    return BackgroundDispatcher(LoggingDispatcher(), max_workers=workers)
