"""HMAC-SHA256 signing for cookie values.

Learn: The session cookie carries "<token>.<signature>". Verification always
recomputes the expected signature and compares with hmac.compare_digest,
never ==, so response time does not leak how many leading bytes matched.
"""

import hashlib
import hmac
from typing import Optional

from warden.crypto.aead import to_base64url


def generate_signature(payload: str, secret: str) -> str:
    """Raw HMAC-SHA256 signature, base64url without padding."""
    digest = hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return to_base64url(digest)


def sign(value: str, secret: str) -> str:
    """Return "value.signature"."""
    return f"{value}.{generate_signature(value, secret)}"


def verify_signature(payload: str, signature: str, secret: str) -> bool:
    expected = generate_signature(payload, secret)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def unsign(signed_value: Optional[str], secret: str) -> Optional[str]:
    """Split a "value.signature" string and return value if the signature holds.

    Splits on the LAST dot so values containing dots still round-trip.
    Missing, empty, or malformed input returns None.
    """
    if not signed_value or not signed_value.strip():
        return None
    value, dot, signature = signed_value.rpartition(".")
    if not dot or not value or not signature:
        return None
    return value if verify_signature(value, signature, secret) else None
