import secrets
import string
import time

MERCHANT_REF_PREFIX = "PREMIUM"
_CHARSET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 7) -> str:
    return "".join(secrets.choice(_CHARSET) for _ in range(length))


def generate_merchant_ref(prefix: str = MERCHANT_REF_PREFIX) -> str:
    """Unique merchant reference like PREMIUM-1718000000000-a1b2c3d"""
    return f"{prefix}-{int(time.time() * 1000)}-{random_suffix()}"
