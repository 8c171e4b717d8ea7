"""AES-256-GCM authenticated encryption keyed from the application secret.

Learn: The 32-byte key is derived with HKDF-SHA256 over the UTF-8 secret and
a fixed, versioned context string, so every instance sharing the secret
derives the same key. Each call draws a fresh 12-byte nonce.

Wire format: base64url(nonce[12] ‖ ciphertext ‖ tag[16]), no padding.

decrypt() returns None for every failure class (wrong key, tampered bytes,
truncated input, malformed encoding). Callers cannot tell them apart, which
is the point: no decryption oracle.
"""

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32
HKDF_INFO = b"warden.cookie-cache.v1"


def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES key for a secret (deterministic)."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=HKDF_INFO,
    )
    return hkdf.derive(secret.encode("utf-8"))


def encrypt(plaintext: str, secret: str) -> str:
    """Encrypt plaintext; identical inputs never produce identical output."""
    nonce = os.urandom(NONCE_SIZE)
    # AESGCM appends the 16-byte tag to the ciphertext
    sealed = AESGCM(derive_key(secret)).encrypt(nonce, plaintext.encode("utf-8"), None)
    return to_base64url(nonce + sealed)


def decrypt(token: str, secret: str) -> Optional[str]:
    """Decrypt a token produced by encrypt(). Returns None on any failure."""
    try:
        data = from_base64url(token)
        if len(data) < NONCE_SIZE + TAG_SIZE:
            return None
        nonce, sealed = data[:NONCE_SIZE], data[NONCE_SIZE:]
        plaintext = AESGCM(derive_key(secret)).decrypt(nonce, sealed, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, ValueError, TypeError):
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        return None


# ── Base64url helpers (cookie/URL safe, no padding) ──────────


def to_base64url(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def from_base64url(encoded: str) -> bytes:
    """Strict decode: raises ValueError on characters outside the alphabet."""
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64url data: {e}") from e
