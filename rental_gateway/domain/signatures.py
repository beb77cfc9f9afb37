"""Payment processor callback signatures (HMAC-SHA256 over "order_id|payment_id")"""

import hashlib
import hmac


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    payload = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def is_valid_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Constant-time comparison of the supplied signature against the recomputed one"""
    if not signature or not secret:
        return False

    expected = sign_payment(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())
