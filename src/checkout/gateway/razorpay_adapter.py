"""Razorpay payment gateway adapter.

Talks to the Orders API over HTTPS with basic auth (key id / key secret).
Every call is bounded by the configured timeout; transport errors and
non-2xx responses surface as `GatewayError`.
"""

import httpx
import structlog

from checkout.gateway.port import GatewayError, GatewaySession, PaymentGateway

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=(key_id, key_secret),
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Gateway rejected request",
                path=path,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise GatewayError(f"Gateway returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("Gateway request failed", path=path, error=str(exc))
            raise GatewayError(str(exc) or exc.__class__.__name__) from exc
        return response.json()

    @staticmethod
    def _session(payload: dict) -> GatewaySession:
        return GatewaySession(
            gateway_order_id=payload["id"],
            amount_minor=int(payload["amount"]),
            currency=payload.get("currency", ""),
            receipt=payload.get("receipt", ""),
            status=payload.get("status", "created"),
            raw=payload,
        )

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewaySession:
        payload = self._request(
            "POST",
            "/orders",
            json={"amount": amount_minor, "currency": currency, "receipt": receipt},
        )
        return self._session(payload)

    def close(self) -> None:
        self._client.close()
