"""Request-scoped collaborators for the Checkout routes.

Identity comes from an upstream auth layer as `X-User-Id` / `X-User-Role`
headers. The notifier, gateway client and settings are installed once on
`app.state` by `install_services`, handed to fresh service objects per
request, and closed by `shutdown_services` when the app stops.
"""

from dataclasses import dataclass

import structlog
from fastapi import Depends, FastAPI, Header, Request

from checkout.config import CheckoutSettings
from checkout.coupon.ledger import CouponLedger
from checkout.errors import Forbidden, Unauthorized
from checkout.gateway import PaymentGateway, build_gateway
from checkout.order.lifecycle import OrderLifecycle
from checkout.payment.reconciler import PaymentReconciler
from notifications import NotificationDispatcher, build_dispatcher

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def install_services(
    app: FastAPI,
    settings: CheckoutSettings,
    dispatcher: NotificationDispatcher | None = None,
    gateway: PaymentGateway | None = None,
) -> None:
    app.state.checkout_settings = settings
    app.state.dispatcher = dispatcher or build_dispatcher(settings.dispatcher_workers)
    app.state.gateway = gateway or build_gateway(settings)


def shutdown_services(app: FastAPI) -> None:
    """Close what `install_services` opened. Queued notices are drained first."""
    for name in ("dispatcher", "gateway"):
        service = getattr(app.state, name, None)
        if service is None:
            continue
        try:
            service.close()
        except Exception as exc:
            logger.error("Service did not shut down cleanly", service=name, error=str(exc))


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
def current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    if not x_user_id:
        raise Unauthorized("Authentication required")
    return Principal(user_id=x_user_id, role=(x_user_role or "user").lower())


def require_admin(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Administrator access required")
    return principal


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
def get_settings(request: Request) -> CheckoutSettings:
    return request.app.state.checkout_settings


def get_lifecycle(request: Request) -> OrderLifecycle:
    return OrderLifecycle(ledger=CouponLedger(), dispatcher=request.app.state.dispatcher)


def get_reconciler(request: Request) -> PaymentReconciler:
    return PaymentReconciler(
        gateway=request.app.state.gateway,
        settings=request.app.state.checkout_settings,
        ledger=CouponLedger(),
        dispatcher=request.app.state.dispatcher,
    )
