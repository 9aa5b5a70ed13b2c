"""In-memory dispatcher for development and testing.

Keeps every notice it receives and can be configured at runtime to fail,
so callers can be tested against an unavailable notifier.
"""

from notifications.port import DispatchFailed, NotificationDispatcher


class RecordingDispatcher(NotificationDispatcher):
    """Configurable recording dispatcher."""

    def __init__(self) -> None:
        self.should_fail: bool = False
        self.failure_reason: str = "Notifier unavailable"
        self.events: list = []
        self.attempts: int = 0

    def configure(self, should_fail: bool, failure_reason: str = "Notifier unavailable") -> None:
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def dispatch(self, event) -> None:
        self.attempts += 1
        if self.should_fail:
            raise DispatchFailed(self.failure_reason)
        self.events.append(event)

    def of_type(self, event_cls) -> list:
        return [event for event in self.events if isinstance(event, event_cls)]

    def clear(self) -> None:
        self.events.clear()
        self.attempts = 0
