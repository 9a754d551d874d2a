import hashlib
import hmac
from typing import Optional, Union


def generate_signature(private_key: str, merchant_code: str, merchant_ref: str, amount: int) -> str:
    """Tripay transaction signature: HMAC-SHA256 over merchant code + merchant ref + amount"""
    data = f"{merchant_code}{merchant_ref}{amount}"
    return hmac.new(private_key.encode(), data.encode(), hashlib.sha256).hexdigest()


def verify_callback_signature(private_key: str, callback_signature: Optional[str], payload: Union[bytes, str]) -> bool:
    """Verify the x-callback-signature header against the raw callback body"""
    if not private_key or not callback_signature:
        return False
    if isinstance(payload, str):
        payload = payload.encode()
    generated = hmac.new(private_key.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(callback_signature.encode(), generated.encode())
