"""Checkout error taxonomy.

Input validation failures use Protean's ``ValidationError`` (rendered as 400
by Protean's FastAPI handlers). Everything else raised by the Checkout
domain derives from ``CheckoutError`` and carries a stable, machine-checkable
``reason`` together with the HTTP status it maps to.
"""


class CheckoutError(Exception):
    status_code = 400
    reason = "checkout_error"
    retryable = False

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.reason.replace("_", " ").capitalize()
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.reason,
            "message": self.message,
            "retryable": self.retryable,
            **{key: str(value) for key, value in self.context.items()},
        }


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------
class NotFound(CheckoutError):
    status_code = 404
    reason = "not_found"


class OrderNotFound(NotFound):
    reason = "order_not_found"


class CouponNotFound(NotFound):
    reason = "coupon_not_found"


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------
class Unauthorized(CheckoutError):
    status_code = 401
    reason = "unauthorized"


# ---------------------------------------------------------------------------
# 403
# ---------------------------------------------------------------------------
class Forbidden(CheckoutError):
    status_code = 403
    reason = "forbidden"


# ---------------------------------------------------------------------------
# 400 / 409: business rule conflicts
# ---------------------------------------------------------------------------
class Conflict(CheckoutError):
    status_code = 409
    reason = "conflict"


class InvalidTransition(Conflict):
    reason = "invalid_transition"


class WrongMethod(Conflict):
    reason = "wrong_payment_method"


class CouponExhausted(Conflict):
    reason = "coupon_exhausted"


class CouponInvalid(Conflict):
    status_code = 400
    reason = "coupon_invalid"


class MinimumNotMet(Conflict):
    status_code = 400
    reason = "minimum_not_met"


# ---------------------------------------------------------------------------
# Payment proof
# ---------------------------------------------------------------------------
class SignatureMismatch(CheckoutError):
    status_code = 400
    reason = "signature_mismatch"


# ---------------------------------------------------------------------------
# 5xx: collaborators and storage
# ---------------------------------------------------------------------------
class Upstream(CheckoutError):
    status_code = 502
    reason = "upstream_failure"


class GatewayUnavailable(Upstream):
    reason = "gateway_unavailable"


class StorageUnavailable(Upstream):
    status_code = 503
    reason = "storage_unavailable"
    retryable = True
