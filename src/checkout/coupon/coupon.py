"""Coupon aggregate: a promotional code with a bounded redemption counter.

`used_count` is never modified through the aggregate. Redemptions go through
`CouponRepository.advance_used_count`, a conditional update at the storage
layer, so concurrent checkouts of a hot coupon cannot overshoot the limit.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from checkout.coupon.events import CouponCreated
from checkout.domain import checkout


class DiscountType(Enum):
    PERCENT = "percent"
    FLAT = "flat"


def normalize_code(code):
    """Coupon codes are compared trimmed and uppercased everywhere."""
    if code is None:
        return None
    return str(code).strip().upper()


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@checkout.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    discount_type = String(required=True, choices=DiscountType)
    value = Integer(required=True, min_value=1)
    min_order_value = Integer(default=0, min_value=0)
    expires_at = DateTime(required=True)
    usage_limit = Integer(min_value=1)  # None = unlimited
    used_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    created_by = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENT.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def used_count_within_limit(self):
        if self.usage_limit is not None and (self.used_count or 0) > self.usage_limit:
            raise ValidationError({"used_count": ["Coupon used more times than its usage limit"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        discount_type,
        value,
        expires_at,
        min_order_value=0,
        usage_limit=None,
        created_by=None,
    ):
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError({"code": ["Coupon code is required"]})

        now = datetime.now(UTC)
        coupon = cls(
            code=normalized,
            discount_type=discount_type,
            value=value,
            min_order_value=min_order_value or 0,
            expires_at=as_utc(expires_at),
            usage_limit=usage_limit,
            used_count=0,
            is_active=True,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                value=coupon.value,
                min_order_value=coupon.min_order_value,
                usage_limit=coupon.usage_limit,
                expires_at=coupon.expires_at,
                created_by=str(created_by) if created_by else None,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_expired(self, now=None):
        now = now or datetime.now(UTC)
        return as_utc(self.expires_at) <= as_utc(now)

    def is_exhausted(self):
        return self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit

    def remaining_uses(self):
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - (self.used_count or 0), 0)

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def toggle(self):
        """Flip the active flag."""
        self.is_active = not self.is_active
        self.updated_at = datetime.now(UTC)


@checkout.repository(part_of=Coupon)
class CouponRepository:
    """Coupon storage, including the compare-and-set used by the ledger."""

    def find(self, coupon_id) -> Coupon | None:
        try:
            return self.get(coupon_id)
        except ObjectNotFoundError:
            return None

    def find_by_code(self, code) -> Coupon | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        items = self._dao.query.filter(code=normalized).all().items
        return items[0] if items else None

    def newest_first(self) -> list[Coupon]:
        return self._dao.query.order_by("-created_at").all().items

    def advance_used_count(self, coupon_id, expected: int, target: int) -> bool:
        """Move `used_count` from `expected` to `target` in a single conditional update.

        Returns False when another writer changed the counter first; the caller
        must re-read before trying again. `target` is never below `expected`.
        """
        if target < expected:
            raise ValueError("used_count never decreases")
        return self.compare_and_set(
            coupon_id,
            expected={"used_count": expected},
            changes={"used_count": target, "updated_at": datetime.now(UTC)},
        )

    def compare_and_set(self, coupon_id, expected: dict, changes: dict) -> bool:
        """Apply `changes` only if the stored coupon still matches `expected`.

        Writes just the named fields, so a concurrent redemption is never
        overwritten by a stale copy of the aggregate.
        """
        criteria = self._dao.query.filter(id=str(coupon_id), **expected)._criteria
        return self._dao._update_all(criteria, **changes) == 1

    def remove(self, coupon: Coupon) -> None:
        self._dao.delete(coupon)
