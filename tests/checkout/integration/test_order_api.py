"""Integration tests for the order endpoints via TestClient."""

import pytest
from protean import current_domain

from checkout.coupon.coupon import Coupon
from checkout.order.events import OrderPlaced, PaymentConfirmed

CUSTOMER = {"X-User-Id": "cust-001"}
OTHER_CUSTOMER = {"X-User-Id": "cust-002"}
ADMIN = {"X-User-Id": "admin-001", "X-User-Role": "admin"}


def _place_cod(client, order_body, **kwargs):
    response = client.post("/order/place", json=order_body(**kwargs), headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()


def _place_gateway(client, order_body, **kwargs):
    response = client.post("/order/place-gateway", json=order_body(**kwargs), headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()


class TestAuthentication:
    def test_missing_user_is_unauthorized(self, client, order_body):
        response = client.post("/order/place", json=order_body())
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_admin_routes_reject_customers(self, client):
        response = client.get("/order/all", headers=CUSTOMER)
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestPlaceCodOrder:
    def test_places_order(self, client, order_body, dispatcher):
        data = _place_cod(client, order_body)

        assert data["customer_id"] == "cust-001"
        assert data["status"] == "Order placed"
        assert data["payment_method"] == "COD"
        assert data["payment_confirmed"] is False
        assert data["amount"] == 1000
        assert data["discount"] == 0
        assert len(dispatcher.of_type(OrderPlaced)) == 1

    def test_applies_coupon(self, client, order_body, add_coupon):
        add_coupon(code="SAVE20", value=20)

        data = _place_cod(client, order_body, coupon_code="save20")

        assert data["pre_discount_amount"] == 1000
        assert data["discount"] == 200
        assert data["amount"] == 800
        assert data["coupon_code"] == "SAVE20"
        assert current_domain.repository_for(Coupon).find_by_code("SAVE20").used_count == 1

    def test_unknown_coupon_rejected(self, client, order_body):
        response = client.post("/order/place", json=order_body(coupon_code="NOPE"), headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["error"] == "coupon_invalid"

    def test_missing_address_rejected(self, client, items):
        response = client.post("/order/place", json={"items": items, "amount": 1000}, headers=CUSTOMER)
        assert response.status_code == 400

    def test_non_positive_amount_rejected(self, client, order_body):
        response = client.post("/order/place", json=order_body(amount=0), headers=CUSTOMER)
        assert response.status_code == 400


class TestGatewayOrder:
    def test_opens_session(self, client, order_body, gateway):
        data = _place_gateway(client, order_body)

        assert data["order"]["payment_method"] == "Gateway"
        assert data["order"]["payment_confirmed"] is False
        assert data["key_id"] == "rzp_test_key"
        assert data["gateway_order"]["amount"] == 100000
        assert data["gateway_order"]["currency"] == "INR"
        assert data["order"]["gateway_order_id"] == data["gateway_order"]["id"]
        assert gateway.calls[0]["receipt"] == data["order"]["order_id"]

    def test_gateway_down_stores_nothing(self, client, order_body, gateway):
        gateway.configure(should_succeed=False)

        response = client.post("/order/place-gateway", json=order_body(), headers=CUSTOMER)

        assert response.status_code == 502
        assert response.json()["error"] == "gateway_unavailable"
        assert client.get("/order/mine", headers=CUSTOMER).json()["orders"] == []

    def test_verify_confirms_once(self, client, order_body, gateway, dispatcher):
        data = _place_gateway(client, order_body)
        order_id = data["order"]["order_id"]
        gateway_order_id = data["gateway_order"]["id"]
        payment_id, signature = gateway.sign_payment(gateway_order_id)
        proof = {
            "order_id": order_id,
            "gateway_order_id": gateway_order_id,
            "gateway_payment_id": payment_id,
            "signature": signature,
        }

        first = client.post("/order/verify-gateway", json=proof, headers=CUSTOMER)
        second = client.post("/order/verify-gateway", json=proof, headers=CUSTOMER)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["payment_confirmed"] is True
        assert second.json()["payment_confirmed"] is True
        assert len(dispatcher.of_type(PaymentConfirmed)) == 1

    def test_bad_signature_rejected(self, client, order_body, gateway):
        data = _place_gateway(client, order_body)
        gateway_order_id = data["gateway_order"]["id"]
        payment_id, _ = gateway.sign_payment(gateway_order_id)

        response = client.post(
            "/order/verify-gateway",
            json={
                "order_id": data["order"]["order_id"],
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": payment_id,
                "signature": "0" * 64,
            },
            headers=CUSTOMER,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "signature_mismatch"
        status = client.get(f"/order/status/{data['order']['order_id']}", headers=CUSTOMER).json()
        assert status["payment_confirmed"] is False

    @pytest.mark.parametrize("mangle", [str.upper, lambda s: f" {s} ", lambda s: "\u00e9" * len(s)])
    def test_signature_must_match_exactly(self, client, order_body, gateway, mangle):
        data = _place_gateway(client, order_body)
        gateway_order_id = data["gateway_order"]["id"]
        payment_id, signature = gateway.sign_payment(gateway_order_id)

        response = client.post(
            "/order/verify-gateway",
            json={
                "order_id": data["order"]["order_id"],
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": payment_id,
                "signature": mangle(signature),
            },
            headers=CUSTOMER,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "signature_mismatch"

    def test_missing_proof_fields_rejected(self, client, order_body):
        data = _place_gateway(client, order_body)

        response = client.post(
            "/order/verify-gateway",
            json={"order_id": data["order"]["order_id"]},
            headers=CUSTOMER,
        )

        assert response.status_code == 400

    def test_callback_confirms_without_user(self, client, order_body, gateway):
        data = _place_gateway(client, order_body)
        gateway_order_id = data["gateway_order"]["id"]
        payment_id, signature = gateway.sign_payment(gateway_order_id)

        response = client.post(
            "/order/gateway-callback",
            json={
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": payment_id,
                "signature": signature,
            },
        )

        assert response.status_code == 200
        assert response.json() == {"status": "confirmed"}
        status = client.get(f"/order/status/{data['order']['order_id']}", headers=CUSTOMER).json()
        assert status["payment_confirmed"] is True


class TestCodConfirmation:
    def test_admin_confirms(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.post("/order/verify-cod", json={"order_id": order_id}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["payment_confirmed"] is True

    def test_other_customer_forbidden(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.post("/order/verify-cod", json={"order_id": order_id}, headers=OTHER_CUSTOMER)

        assert response.status_code == 403

    def test_unknown_order(self, client):
        response = client.post("/order/verify-cod", json={"order_id": "missing"}, headers=ADMIN)
        assert response.status_code == 404
        assert response.json()["error"] == "order_not_found"

    def test_cancelled_order_conflicts(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]
        client.post("/order/cancel", json={"order_id": order_id}, headers=CUSTOMER)

        response = client.post("/order/verify-cod", json={"order_id": order_id}, headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"


class TestStatusTransitions:
    def test_admin_advances_status(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.patch("/order/status", json={"order_id": order_id, "status": "Packing"}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["status"] == "Packing"

    def test_skipping_a_step_conflicts(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.patch("/order/status", json={"order_id": order_id, "status": "Delivered"}, headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_unknown_status_rejected(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.patch("/order/status", json={"order_id": order_id, "status": "Lost"}, headers=ADMIN)

        assert response.status_code == 400

    def test_customer_cannot_update_status(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.patch("/order/status", json={"order_id": order_id, "status": "Packing"}, headers=CUSTOMER)

        assert response.status_code == 403


class TestCancellation:
    def test_owner_cancels(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        body = {"order_id": order_id, "reason": "Changed my mind"}
        response = client.post("/order/cancel", json=body, headers=CUSTOMER)

        assert response.status_code == 200
        assert response.json()["status"] == "Cancelled"
        assert response.json()["cancellation_reason"] == "Changed my mind"

    def test_other_customer_forbidden(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.post("/order/cancel", json={"order_id": order_id}, headers=OTHER_CUSTOMER)

        assert response.status_code == 403

    def test_cannot_cancel_once_shipped(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]
        for status in ("Packing", "Shipping"):
            client.patch("/order/status", json={"order_id": order_id, "status": status}, headers=ADMIN)

        response = client.post("/order/cancel", json={"order_id": order_id}, headers=CUSTOMER)

        assert response.status_code == 409


class TestListing:
    def test_mine_only_shows_own_orders(self, client, order_body):
        _place_cod(client, order_body)
        client.post("/order/place", json=order_body(), headers=OTHER_CUSTOMER)

        orders = client.get("/order/mine", headers=CUSTOMER).json()["orders"]

        assert len(orders) == 1
        assert orders[0]["customer_id"] == "cust-001"

    def test_admin_sees_all(self, client, order_body):
        _place_cod(client, order_body)
        client.post("/order/place", json=order_body(), headers=OTHER_CUSTOMER)

        orders = client.get("/order/all", headers=ADMIN).json()["orders"]

        assert len(orders) == 2

    def test_status_poll(self, client, order_body):
        order_id = _place_cod(client, order_body)["order_id"]

        response = client.get(f"/order/status/{order_id}", headers=CUSTOMER)

        assert response.status_code == 200
        assert response.json()["status"] == "Order placed"
        assert response.json()["payment_confirmed"] is False


class TestSalesAnalytics:
    def test_admin_only(self, client):
        assert client.get("/order/analytics", headers=CUSTOMER).status_code == 403

    def test_summary_reflects_placed_orders(self, client, order_body):
        first = _place_cod(client, order_body, amount=1000)
        _place_cod(client, order_body, amount=500)
        client.post("/order/verify-cod", json={"order_id": first["order_id"]}, headers=ADMIN)

        response = client.get("/order/analytics", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["total_revenue"] == 1500
        assert data["total_orders"] == 2
        assert data["completed_orders"] == 1
        assert data["pending_orders"] == 1
        assert data["today_orders"] == 2
        assert data["average_order_value"] == 750.0
        assert sum(m["orders"] for m in data["monthly_sales"]) == 2
