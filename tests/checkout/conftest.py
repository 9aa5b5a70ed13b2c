from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from checkout.config import CheckoutSettings
from checkout.coupon.coupon import Coupon
from checkout.coupon.ledger import CouponLedger
from checkout.gateway.fake_adapter import FakeGateway
from checkout.order.lifecycle import OrderLifecycle
from checkout.payment.reconciler import PaymentReconciler
from notifications import RecordingDispatcher

SECRET = "s3cr3t"


def _add_coupon(code="SAVE20", discount_type="percent", value=20, min_order_value=0, usage_limit=None, **overrides):
    """Store a coupon and return it."""
    expires_at = overrides.pop("expires_at", datetime.now(UTC) + timedelta(days=30))
    coupon = Coupon.create(
        code=code,
        discount_type=discount_type,
        value=value,
        expires_at=expires_at,
        min_order_value=min_order_value,
        usage_limit=usage_limit,
    )
    for field, value in overrides.items():
        setattr(coupon, field, value)
    current_domain.repository_for(Coupon).add(coupon)
    return coupon


def _line_items(quantity=2, unit_price=500):
    return [
        {
            "product_id": "prod-001",
            "name": "Linen Shirt",
            "quantity": quantity,
            "unit_price": unit_price,
            "size": "M",
        }
    ]


def _shipping_address():
    return {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@example.com",
        "street": "12 MG Road",
        "city": "Pune",
        "state": "MH",
        "postal_code": "411001",
        "country": "India",
        "phone": "9800000000",
    }


@pytest.fixture()
def settings():
    return CheckoutSettings(gateway="fake", gateway_key_id="rzp_test_key", gateway_key_secret=SECRET)


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def gateway():
    return FakeGateway(key_secret=SECRET)


@pytest.fixture()
def ledger():
    return CouponLedger()


@pytest.fixture()
def lifecycle(ledger, dispatcher):
    return OrderLifecycle(ledger=ledger, dispatcher=dispatcher)


@pytest.fixture()
def reconciler(gateway, settings, ledger, dispatcher):
    return PaymentReconciler(gateway=gateway, settings=settings, ledger=ledger, dispatcher=dispatcher)


@pytest.fixture()
def place_cod(lifecycle):
    """Place a pay-on-delivery order for `customer_id`."""

    def _place(customer_id="cust-001", amount=1000, coupon_code=None):
        return lifecycle.create(
            customer_id=customer_id,
            items=_line_items(),
            amount=amount,
            address=_shipping_address(),
            payment_method="COD",
            coupon_code=coupon_code,
        )

    return _place


@pytest.fixture()
def place_gateway(lifecycle, reconciler):
    """Place a gateway order the way the API does: draft, open session, persist."""

    def _place(customer_id="cust-001", amount=1000, coupon_code=None):
        order = lifecycle.draft(
            customer_id=customer_id,
            items=_line_items(),
            amount=amount,
            address=_shipping_address(),
            payment_method="Gateway",
            coupon_code=coupon_code,
        )
        reconciler.open_gateway_session(order)
        return lifecycle.persist(order)

    return _place


@pytest.fixture()
def add_coupon():
    return _add_coupon


@pytest.fixture()
def items():
    return _line_items()


@pytest.fixture()
def address():
    return _shipping_address()
