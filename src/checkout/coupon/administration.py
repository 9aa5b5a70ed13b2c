"""Coupon administration: commands and handler.

Coupons are created, toggled and deleted by operators. Deleting a coupon
never touches orders that already captured its code and discount.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from checkout.coupon.coupon import Coupon
from checkout.domain import checkout
from checkout.errors import Conflict, CouponNotFound

logger = structlog.get_logger(__name__)


@checkout.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=10)
    value = Integer(required=True)
    min_order_value = Integer(default=0)
    expires_at = DateTime(required=True)
    usage_limit = Integer()
    created_by = Identifier()


@checkout.command(part_of="Coupon")
class ToggleCoupon:
    coupon_id = Identifier(required=True)


@checkout.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)


def _load(repo, coupon_id):
    coupon = repo.find(coupon_id)
    if coupon is None:
        raise CouponNotFound("Coupon not found", coupon_id=coupon_id)
    return coupon


@checkout.command_handler(part_of=Coupon)
class CouponAdministrationHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": ["Coupon code already exists"]})

        coupon = Coupon.create(
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            expires_at=command.expires_at,
            min_order_value=command.min_order_value or 0,
            usage_limit=command.usage_limit,
            created_by=command.created_by,
        )
        repo.add(coupon)
        logger.info("Coupon created", coupon_id=str(coupon.id), code=coupon.code)
        return str(coupon.id)

    @handle(ToggleCoupon)
    def toggle_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = _load(repo, command.coupon_id)
        was_active = bool(coupon.is_active)
        coupon.toggle()

        # Only the flag is written; `used_count` belongs to the ledger
        if not repo.compare_and_set(
            coupon.id,
            expected={"is_active": was_active},
            changes={"is_active": coupon.is_active, "updated_at": coupon.updated_at},
        ):
            raise Conflict("Coupon was changed concurrently, reload and retry", coupon_id=command.coupon_id)

        logger.info("Coupon toggled", coupon_id=str(command.coupon_id), is_active=coupon.is_active)
        return coupon.is_active

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = _load(repo, command.coupon_id)
        repo.remove(coupon)
        logger.info("Coupon deleted", coupon_id=str(command.coupon_id), code=coupon.code)
