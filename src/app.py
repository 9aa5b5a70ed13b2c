"""Checkout FastAPI application.

Web server that processes checkout requests synchronously over HTTP. Each
request to a checkout route runs inside the checkout domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from checkout/domain.toml:
#   - default      → memory storage, fake gateway
#   - "production" → postgresql, Razorpay gateway
from contextlib import asynccontextmanager

from checkout.domain import checkout  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

checkout.init()

from checkout.api import (  # noqa: E402
    cart_router,
    coupon_router,
    install_services,
    order_router,
    register_checkout_exception_handlers,
    shutdown_services,
)
from checkout.config import CheckoutSettings  # noqa: E402
from checkout.utils.logging import add_context, clear_context  # noqa: E402

_CHECKOUT_PREFIXES = ("/order", "/coupon", "/cart")


def create_app(settings=None, dispatcher=None, gateway=None) -> FastAPI:
    """Build the API. Collaborators default to what configuration names."""
    if settings is None:
        with checkout.domain_context():
            settings = CheckoutSettings.from_domain(checkout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        shutdown_services(app)

    app = FastAPI(
        title="Checkout API",
        description="Orders, coupon discounts and payment reconciliation",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the checkout domain context for checkout routes."""
        if request.url.path.startswith(_CHECKOUT_PREFIXES):
            add_context(path=request.url.path, user_id=request.headers.get("x-user-id"))
            try:
                with checkout.domain_context():
                    return await call_next(request)
            finally:
                clear_context()
        # Health check, docs
        return await call_next(request)

    install_services(app, settings, dispatcher=dispatcher, gateway=gateway)
    register_checkout_exception_handlers(app)

    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(cart_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domain": checkout.name,
                "gateway": settings.gateway,
            }
        )

    return app


app = create_app()
