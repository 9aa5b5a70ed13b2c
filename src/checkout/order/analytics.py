"""Sales analytics for the operator dashboard.

Figures are computed over every stored order. Cash-on-delivery orders count
towards revenue as soon as they are placed, before any payment is
confirmed, and paid vs unpaid is reported separately. Catalog figures
(product counts, best sellers) belong to the catalog service and are not
reported here.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from checkout.order.order import Order

logger = structlog.get_logger(__name__)

MONTHS_REPORTED = 12


@dataclass(frozen=True)
class MonthlySales:
    year: int
    month: int
    revenue: int
    orders: int

    def to_dict(self) -> dict:
        return {"year": self.year, "month": self.month, "revenue": self.revenue, "orders": self.orders}


@dataclass(frozen=True)
class SalesSummary:
    total_revenue: int = 0
    total_orders: int = 0
    pending_orders: int = 0
    completed_orders: int = 0
    average_order_value: float = 0.0
    today_revenue: int = 0
    today_orders: int = 0
    monthly_sales: list[MonthlySales] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_revenue": self.total_revenue,
            "total_orders": self.total_orders,
            "pending_orders": self.pending_orders,
            "completed_orders": self.completed_orders,
            "average_order_value": self.average_order_value,
            "today_revenue": self.today_revenue,
            "today_orders": self.today_orders,
            "monthly_sales": [m.to_dict() for m in self.monthly_sales],
        }


def _as_utc(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _month_index(moment: datetime) -> int:
    return moment.year * 12 + moment.month - 1


def summarize(orders, now: datetime | None = None) -> SalesSummary:
    """Fold `orders` into a `SalesSummary` as of `now` (UTC)."""
    now = _as_utc(now) or datetime.now(UTC)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    first_month = _month_index(now) - (MONTHS_REPORTED - 1)

    total_revenue = total_orders = paid = today_revenue = today_orders = 0
    months: dict[int, list[int]] = defaultdict(lambda: [0, 0])

    for order in orders:
        amount = order.amount or 0
        total_revenue += amount
        total_orders += 1
        if order.payment_confirmed:
            paid += 1

        placed_at = _as_utc(order.placed_at)
        if placed_at is None:
            continue
        if today_start <= placed_at <= now:
            today_revenue += amount
            today_orders += 1
        index = _month_index(placed_at)
        if first_month <= index <= _month_index(now):
            months[index][0] += amount
            months[index][1] += 1

    average = round(total_revenue / total_orders, 2) if total_orders else 0.0
    return SalesSummary(
        total_revenue=total_revenue,
        total_orders=total_orders,
        pending_orders=total_orders - paid,
        completed_orders=paid,
        average_order_value=average,
        today_revenue=today_revenue,
        today_orders=today_orders,
        monthly_sales=[
            MonthlySales(year=index // 12, month=index % 12 + 1, revenue=revenue, orders=count)
            for index, (revenue, count) in sorted(months.items())
        ],
    )


class SalesAnalytics:
    def __init__(self, orders=None):
        self._orders = orders

    @property
    def orders(self):
        return self._orders or current_domain.repository_for(Order)

    def summary(self, now=None) -> SalesSummary:
        result = summarize(self.orders.newest_first(), now=now)
        logger.info(
            "Sales summary computed",
            total_orders=result.total_orders,
            total_revenue=result.total_revenue,
        )
        return result
