"""Cryptographic primitives.

Learn: Three small, stateless modules:
- aead:    AES-256-GCM encrypt/decrypt with an HKDF-derived key
- signing: HMAC-SHA256 signatures with constant-time verification
- tokens:  CSPRNG strings drawn from named alphabets (session tokens)

Anything holding the same secret can verify/decrypt what another process
produced — no key ring, no shared state.
"""

from warden.crypto.aead import decrypt, derive_key, encrypt
from warden.crypto.tokens import random_string
from warden.crypto.signing import generate_signature, sign, unsign, verify_signature

__all__ = [
    "decrypt",
    "derive_key",
    "encrypt",
    "generate_signature",
    "random_string",
    "sign",
    "unsign",
    "verify_signature",
]
