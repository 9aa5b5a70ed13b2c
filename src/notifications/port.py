"""Notification dispatcher port (abstract interface).

Checkout hands every lifecycle notice (``OrderPlaced``, ``OrderStatusChanged``,
``PaymentConfirmed``) to a dispatcher once the change it describes is
durably stored. Delivery itself (email, SMS, push) lives outside checkout;
adapters here only decide how a notice leaves the process.
"""

from abc import ABC, abstractmethod


class DispatchFailed(Exception):
    """Raised by an adapter when a notice could not be handed off."""


def describe(event) -> dict:
    """Flat, log-friendly summary of a lifecycle notice."""
    summary = {"event_type": event.__class__.__name__}
    for field in ("order_id", "customer_id", "previous_status", "new_status", "payment_method", "amount"):
        value = getattr(event, field, None)
        if value is not None:
            summary[field] = str(value)
    return summary


class NotificationDispatcher(ABC):
    """Fire-and-forget delivery of lifecycle notices."""

    @abstractmethod
    def dispatch(self, event) -> None:
        """Hand `event` off for delivery. May raise; callers guard the call."""
        ...

    def close(self) -> None:
        """Release delivery resources. Called once at shutdown."""
