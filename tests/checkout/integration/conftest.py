import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from checkout.api import (
    cart_router,
    coupon_router,
    install_services,
    order_router,
    register_checkout_exception_handlers,
)
from checkout.domain import checkout


@pytest.fixture()
def client(settings, dispatcher, gateway):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with checkout.domain_context():
            return await call_next(request)

    install_services(app, settings, dispatcher=dispatcher, gateway=gateway)
    register_checkout_exception_handlers(app)
    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(cart_router)
    return TestClient(app)


@pytest.fixture()
def order_body(items, address):
    """Request body for placing an order worth 1000."""

    def _body(amount=1000, coupon_code=None):
        body = {"items": items, "amount": amount, "address": address}
        if coupon_code is not None:
            body["coupon_code"] = coupon_code
        return body

    return _body
