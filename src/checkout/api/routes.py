"""FastAPI routes for the Checkout domain: orders, coupons and carts."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from checkout.api.dependencies import (
    Principal,
    current_principal,
    get_lifecycle,
    get_reconciler,
    get_settings,
    require_admin,
)
from checkout.api.schemas import (
    AddressSchema,
    AddToCartRequest,
    CancelOrderRequest,
    CartResponse,
    CouponListResponse,
    CouponResponse,
    CreateCouponRequest,
    DiscountQuoteResponse,
    GatewayCallbackRequest,
    GatewayOrderResponse,
    GatewaySessionSchema,
    OrderItemSchema,
    OrderListResponse,
    OrderResponse,
    PaymentStatusResponse,
    PlaceOrderRequest,
    ReconciliationEntrySchema,
    ReconciliationResponse,
    RemoveFromCartRequest,
    SalesSummaryResponse,
    StatusResponse,
    ToggleCouponResponse,
    UpdateCartRequest,
    UpdateStatusRequest,
    ValidateCouponRequest,
    VerifyCodRequest,
    VerifyGatewayRequest,
)
from checkout.cart.management import AddToCart, ClearCart, RemoveFromCart, UpdateCartLine, cart_contents
from checkout.config import CheckoutSettings
from checkout.coupon.administration import CreateCoupon, DeleteCoupon, ToggleCoupon
from checkout.coupon.coupon import Coupon
from checkout.coupon.ledger import CouponLedger
from checkout.coupon.reconciliation import CouponReconciler
from checkout.order.analytics import SalesAnalytics
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Actor, Order, PaymentMethod
from checkout.payment.reconciler import PaymentReconciler


def _order_response(order: Order) -> OrderResponse:
    address = order.shipping_address
    return OrderResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        items=[
            OrderItemSchema(
                product_id=str(item.product_id),
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                size=item.size or "N/A",
                image=item.image,
            )
            for item in order.items
        ],
        address=AddressSchema(**address.to_dict()) if address else None,
        status=order.status,
        payment_method=order.payment_method,
        payment_confirmed=bool(order.payment_confirmed),
        pre_discount_amount=order.pre_discount_amount,
        discount=order.discount or 0,
        amount=order.amount,
        coupon_code=order.coupon_code,
        gateway_order_id=order.gateway_order_id,
        cancellation_reason=order.cancellation_reason,
        placed_at=order.placed_at,
    )


def _coupon_response(coupon: Coupon) -> CouponResponse:
    return CouponResponse(
        coupon_id=str(coupon.id),
        code=coupon.code,
        discount_type=coupon.discount_type,
        value=coupon.value,
        min_order_value=coupon.min_order_value or 0,
        expires_at=coupon.expires_at,
        usage_limit=coupon.usage_limit,
        used_count=coupon.used_count or 0,
        is_active=bool(coupon.is_active),
    )


def _actor(principal: Principal) -> str:
    return Actor.ADMIN.value if principal.is_admin else Actor.CUSTOMER.value


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/order", tags=["orders"])


@order_router.post("/place", status_code=201, response_model=OrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderResponse:
    """Place a pay-on-delivery order."""
    order = lifecycle.create(
        customer_id=principal.user_id,
        items=[item.model_dump() for item in body.items],
        amount=body.amount,
        address=body.address.model_dump() if body.address else None,
        payment_method=PaymentMethod.COD.value,
        coupon_code=body.coupon_code,
    )
    return _order_response(order)


@order_router.post("/place-gateway", status_code=201, response_model=GatewayOrderResponse)
async def place_gateway_order(
    body: PlaceOrderRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
    reconciler: PaymentReconciler = Depends(get_reconciler),
    settings: CheckoutSettings = Depends(get_settings),
) -> GatewayOrderResponse:
    """Place a gateway order and open its payment session.

    The order is stored only once the gateway session exists.
    """
    order = lifecycle.draft(
        customer_id=principal.user_id,
        items=[item.model_dump() for item in body.items],
        amount=body.amount,
        address=body.address.model_dump() if body.address else None,
        payment_method=PaymentMethod.GATEWAY.value,
        coupon_code=body.coupon_code,
    )
    session = reconciler.open_gateway_session(order)
    lifecycle.persist(order)
    return GatewayOrderResponse(
        order=_order_response(order),
        gateway_order=GatewaySessionSchema(**session.to_dict()),
        key_id=settings.gateway_key_id,
    )


@order_router.post("/verify-gateway", response_model=OrderResponse)
async def verify_gateway_payment(
    body: VerifyGatewayRequest,
    principal: Principal = Depends(current_principal),
    reconciler: PaymentReconciler = Depends(get_reconciler),
) -> OrderResponse:
    """Confirm a gateway payment from the signed proof the client received."""
    order = reconciler.verify_gateway_payment(
        order_id=body.order_id,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
        requested_by=None if principal.is_admin else principal.user_id,
    )
    return _order_response(order)


@order_router.post("/gateway-callback", response_model=StatusResponse)
async def gateway_callback(
    body: GatewayCallbackRequest,
    reconciler: PaymentReconciler = Depends(get_reconciler),
) -> StatusResponse:
    """Server-to-server confirmation from the gateway, authenticated by its signature."""
    reconciler.handle_gateway_callback(
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
    )
    return StatusResponse(status="confirmed")


@order_router.post("/verify-cod", response_model=OrderResponse)
async def verify_cod_payment(
    body: VerifyCodRequest,
    principal: Principal = Depends(current_principal),
    reconciler: PaymentReconciler = Depends(get_reconciler),
) -> OrderResponse:
    order = reconciler.confirm_cod(
        body.order_id,
        requested_by=None if principal.is_admin else principal.user_id,
    )
    return _order_response(order)


@order_router.post("/cancel", response_model=OrderResponse)
async def cancel_order(
    body: CancelOrderRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderResponse:
    order = lifecycle.cancel(
        body.order_id,
        requested_by=principal.user_id,
        reason=body.reason,
        actor=_actor(principal),
    )
    return _order_response(order)


@order_router.get("/status/{order_id}", response_model=PaymentStatusResponse)
async def order_status(
    order_id: str,
    reconciler: PaymentReconciler = Depends(get_reconciler),
) -> PaymentStatusResponse:
    """Read-only poll of an order's status and payment state."""
    view = reconciler.check_payment_status(order_id)
    return PaymentStatusResponse(**view.to_dict())


@order_router.patch("/status", response_model=OrderResponse)
async def update_order_status(
    body: UpdateStatusRequest,
    principal: Principal = Depends(require_admin),  # noqa: ARG001
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderResponse:
    order = lifecycle.update_status(body.order_id, body.status, actor=Actor.ADMIN.value)
    return _order_response(order)


@order_router.get("/mine", response_model=OrderListResponse)
async def my_orders(
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderListResponse:
    return OrderListResponse(orders=[_order_response(o) for o in lifecycle.orders_for(principal.user_id)])


@order_router.get("/all", response_model=OrderListResponse)
async def all_orders(
    principal: Principal = Depends(require_admin),  # noqa: ARG001
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderListResponse:
    return OrderListResponse(orders=[_order_response(o) for o in lifecycle.all_orders()])


@order_router.get("/analytics", response_model=SalesSummaryResponse)
async def sales_analytics(
    principal: Principal = Depends(require_admin),  # noqa: ARG001
) -> SalesSummaryResponse:
    return SalesSummaryResponse(**SalesAnalytics().summary().to_dict())


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupon", tags=["coupons"])


@coupon_router.post("/validate", response_model=DiscountQuoteResponse)
async def validate_coupon(
    body: ValidateCouponRequest,
    principal: Principal = Depends(current_principal),  # noqa: ARG001
) -> DiscountQuoteResponse:
    """Preview the discount a code grants. Never consumes the coupon."""
    quote = CouponLedger().validate(body.code, body.amount)
    return DiscountQuoteResponse(**quote.to_dict())


@coupon_router.post("/create", status_code=201, response_model=CouponResponse)
async def create_coupon(
    body: CreateCouponRequest,
    principal: Principal = Depends(require_admin),
) -> CouponResponse:
    command = CreateCoupon(
        code=body.code,
        discount_type=body.discount_type,
        value=body.value,
        min_order_value=body.min_order_value,
        expires_at=body.expires_at,
        usage_limit=body.usage_limit,
        created_by=principal.user_id,
    )
    coupon_id = current_domain.process(command, asynchronous=False)
    coupon = current_domain.repository_for(Coupon).get(coupon_id)
    return _coupon_response(coupon)


@coupon_router.patch("/toggle/{coupon_id}", response_model=ToggleCouponResponse)
async def toggle_coupon(
    coupon_id: str,
    principal: Principal = Depends(require_admin),  # noqa: ARG001
) -> ToggleCouponResponse:
    is_active = current_domain.process(ToggleCoupon(coupon_id=coupon_id), asynchronous=False)
    return ToggleCouponResponse(coupon_id=coupon_id, is_active=is_active)


@coupon_router.delete("/delete/{coupon_id}", response_model=StatusResponse)
async def delete_coupon(
    coupon_id: str,
    principal: Principal = Depends(require_admin),  # noqa: ARG001
) -> StatusResponse:
    current_domain.process(DeleteCoupon(coupon_id=coupon_id), asynchronous=False)
    return StatusResponse(status="deleted")


@coupon_router.get("/list", response_model=CouponListResponse)
async def list_coupons(
    principal: Principal = Depends(require_admin),  # noqa: ARG001
) -> CouponListResponse:
    coupons = current_domain.repository_for(Coupon).newest_first()
    return CouponListResponse(coupons=[_coupon_response(c) for c in coupons])


@coupon_router.post("/reconcile", response_model=ReconciliationResponse)
async def reconcile_coupons(
    principal: Principal = Depends(require_admin),  # noqa: ARG001
) -> ReconciliationResponse:
    entries = CouponReconciler().reconcile()
    return ReconciliationResponse(entries=[ReconciliationEntrySchema(**e.to_dict()) for e in entries])


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(principal: Principal = Depends(current_principal)) -> CartResponse:
    return CartResponse(cart=cart_contents(principal.user_id))


@cart_router.post("/add", response_model=CartResponse)
async def add_to_cart(body: AddToCartRequest, principal: Principal = Depends(current_principal)) -> CartResponse:
    command = AddToCart(
        customer_id=principal.user_id,
        product_id=body.product_id,
        size=body.size,
        quantity=body.quantity,
    )
    return CartResponse(cart=current_domain.process(command, asynchronous=False))


@cart_router.patch("/update", response_model=CartResponse)
async def update_cart(body: UpdateCartRequest, principal: Principal = Depends(current_principal)) -> CartResponse:
    command = UpdateCartLine(
        customer_id=principal.user_id,
        product_id=body.product_id,
        size=body.size,
        quantity=body.quantity,
    )
    return CartResponse(cart=current_domain.process(command, asynchronous=False))


@cart_router.post("/remove", response_model=CartResponse)
async def remove_from_cart(
    body: RemoveFromCartRequest,
    principal: Principal = Depends(current_principal),
) -> CartResponse:
    command = RemoveFromCart(customer_id=principal.user_id, product_id=body.product_id, size=body.size)
    return CartResponse(cart=current_domain.process(command, asynchronous=False))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(principal: Principal = Depends(current_principal)) -> CartResponse:
    return CartResponse(cart=current_domain.process(ClearCart(customer_id=principal.user_id), asynchronous=False))
