"""Pydantic request/response schemas for the Checkout API.

These are external contracts (anti-corruption layer), separate from the
internal Protean aggregates and commands. Amounts are whole currency units.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OrderItemSchema(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)
    size: str = "N/A"
    image: str | None = None


class AddressSchema(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderItemSchema]
    amount: int
    address: AddressSchema | None = None
    coupon_code: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product_id": "prod-001",
                            "name": "Linen Shirt",
                            "quantity": 2,
                            "unit_price": 500,
                            "size": "M",
                        }
                    ],
                    "amount": 1000,
                    "address": {"street": "12 MG Road", "city": "Pune", "country": "India"},
                    "coupon_code": "SAVE20",
                }
            ]
        }
    }


class VerifyGatewayRequest(BaseModel):
    order_id: str | None = None
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    signature: str | None = None


class GatewayCallbackRequest(BaseModel):
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    signature: str | None = None


class VerifyCodRequest(BaseModel):
    order_id: str


class CancelOrderRequest(BaseModel):
    order_id: str
    reason: str | None = None


class UpdateStatusRequest(BaseModel):
    order_id: str
    status: str


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    items: list[OrderItemSchema]
    address: AddressSchema | None = None
    status: str
    payment_method: str
    payment_confirmed: bool
    pre_discount_amount: int
    discount: int
    amount: int
    coupon_code: str | None = None
    gateway_order_id: str | None = None
    cancellation_reason: str | None = None
    placed_at: datetime | None = None


class GatewaySessionSchema(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str
    status: str


class GatewayOrderResponse(BaseModel):
    order: OrderResponse
    gateway_order: GatewaySessionSchema
    key_id: str


class PaymentStatusResponse(BaseModel):
    order_id: str
    status: str
    payment_method: str
    payment_confirmed: bool
    amount: int
    gateway_order_id: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class MonthlySalesSchema(BaseModel):
    year: int
    month: int = Field(ge=1, le=12)
    revenue: int
    orders: int


class SalesSummaryResponse(BaseModel):
    total_revenue: int
    total_orders: int
    pending_orders: int
    completed_orders: int
    average_order_value: float
    today_revenue: int
    today_orders: int
    monthly_sales: list[MonthlySalesSchema]


# ---------------------------------------------------------------------------
# Coupon Schemas
# ---------------------------------------------------------------------------
class ValidateCouponRequest(BaseModel):
    code: str
    amount: int


class DiscountQuoteResponse(BaseModel):
    code: str
    discount_type: str
    value: int
    amount: int
    discount: int
    final_amount: int


class CreateCouponRequest(BaseModel):
    code: str
    discount_type: str
    value: int
    min_order_value: int = 0
    expires_at: datetime
    usage_limit: int | None = None


class CouponResponse(BaseModel):
    coupon_id: str
    code: str
    discount_type: str
    value: int
    min_order_value: int
    expires_at: datetime
    usage_limit: int | None = None
    used_count: int
    is_active: bool


class CouponListResponse(BaseModel):
    coupons: list[CouponResponse]


class ToggleCouponResponse(BaseModel):
    coupon_id: str
    is_active: bool


class ReconciliationEntrySchema(BaseModel):
    code: str
    recorded: int
    pending: int
    redeemed: int
    adjusted_to: int
    overflow: int


class ReconciliationResponse(BaseModel):
    entries: list[ReconciliationEntrySchema]


# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    size: str | None = None
    quantity: int = Field(default=1, ge=1)


class UpdateCartRequest(BaseModel):
    product_id: str
    size: str | None = None
    quantity: int = Field(ge=0)


class RemoveFromCartRequest(BaseModel):
    product_id: str
    size: str | None = None


class CartResponse(BaseModel):
    cart: dict[str, dict[str, int]]


class StatusResponse(BaseModel):
    status: str
