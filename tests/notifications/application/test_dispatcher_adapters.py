"""Notification dispatcher adapters."""

import pytest

from checkout.order.events import OrderStatusChanged
from checkout.order.order import Order
from notifications import (
    BackgroundDispatcher,
    DispatchFailed,
    LoggingDispatcher,
    RecordingDispatcher,
    build_dispatcher,
)
from notifications.port import describe


def _status_changed():
    order = Order.place(
        customer_id="cust-001",
        items_data=[{"product_id": "prod-1", "name": "Tee", "quantity": 1, "unit_price": 500}],
        pre_discount_amount=500,
        shipping_address={"street": "1 Main St", "city": "Pune", "country": "IN"},
        payment_method="COD",
    )
    order._events.clear()
    order.transition_to("Packing")
    return order._events[-1]


class TestDescribe:
    def test_summary_has_type_and_context(self):
        summary = describe(_status_changed())
        assert summary["event_type"] == "OrderStatusChanged"
        assert summary["customer_id"] == "cust-001"
        assert summary["new_status"] == "Packing"
        assert "amount" not in summary


class TestRecordingDispatcher:
    def test_records_events(self):
        dispatcher = RecordingDispatcher()
        event = _status_changed()
        dispatcher.dispatch(event)

        assert dispatcher.events == [event]
        assert dispatcher.of_type(OrderStatusChanged) == [event]

    def test_configured_failure(self):
        dispatcher = RecordingDispatcher()
        dispatcher.configure(should_fail=True, failure_reason="SMTP down")

        with pytest.raises(DispatchFailed, match="SMTP down"):
            dispatcher.dispatch(_status_changed())
        assert dispatcher.attempts == 1
        assert dispatcher.events == []

    def test_clear(self):
        dispatcher = RecordingDispatcher()
        dispatcher.dispatch(_status_changed())
        dispatcher.clear()
        assert dispatcher.events == []
        assert dispatcher.attempts == 0


class TestLoggingDispatcher:
    def test_dispatch_never_raises(self):
        assert LoggingDispatcher().dispatch(_status_changed()) is None


class TestBackgroundDispatcher:
    def test_delivers_off_the_calling_thread(self):
        inner = RecordingDispatcher()
        dispatcher = BackgroundDispatcher(inner, max_workers=1)

        future = dispatcher.dispatch(_status_changed())
        future.result(timeout=5)
        dispatcher.shutdown()

        assert len(inner.events) == 1

    def test_failure_never_reaches_caller(self):
        inner = RecordingDispatcher()
        inner.configure(should_fail=True)
        dispatcher = BackgroundDispatcher(inner, max_workers=1)

        future = dispatcher.dispatch(_status_changed())
        dispatcher.shutdown(wait=True)

        assert isinstance(future.exception(), DispatchFailed)
        assert inner.attempts == 1

    def test_default_factory(self):
        dispatcher = build_dispatcher(workers=2)
        assert isinstance(dispatcher, BackgroundDispatcher)
        assert isinstance(dispatcher.inner, LoggingDispatcher)
        dispatcher.shutdown()

    def test_close_drains_queued_deliveries(self):
        inner = RecordingDispatcher()
        dispatcher = BackgroundDispatcher(inner, max_workers=1)

        futures = [dispatcher.dispatch(_status_changed()) for _ in range(3)]
        dispatcher.close()

        assert all(future.done() for future in futures)
        assert len(inner.events) == 3
        with pytest.raises(RuntimeError):
            dispatcher.dispatch(_status_changed())
