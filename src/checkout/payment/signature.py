"""Gateway payment proof.

The gateway signs `gateway_order_id + "|" + gateway_payment_id` with the
merchant secret using HMAC-SHA256 and sends the lowercase hex digest back
with the payment. Verification recomputes it and compares the exact bytes
submitted in constant time: no case folding or trimming is applied.
"""

import hashlib
import hmac


def sign(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def is_valid_signature(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    if not secret or not signature:
        return False
    expected = sign(secret, gateway_order_id, gateway_payment_id)
    # compare_digest only accepts ASCII str, so compare bytes
    return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "surrogatepass"))
