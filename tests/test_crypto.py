"""Crypto primitive tests — AEAD, HMAC signing, random tokens.

Learn: decrypt() and unsign() must fail closed with a single outcome (None)
for every kind of bad input, never an exception.
"""

import re

import pytest

from warden.crypto import (
    decrypt,
    derive_key,
    encrypt,
    generate_signature,
    random_string,
    sign,
    unsign,
    verify_signature,
)
from warden.crypto.aead import NONCE_SIZE, TAG_SIZE, from_base64url, to_base64url

SECRET = "a-secret-that-is-at-least-32-bytes-long!!"
OTHER_SECRET = "another-secret-that-is-32-bytes-or-more!!"


# ═══════════════════════════════════════════════════════════
# AEAD
# ═══════════════════════════════════════════════════════════


def test_derive_key_is_deterministic_and_32_bytes():
    key = derive_key(SECRET)
    assert len(key) == 32
    assert derive_key(SECRET) == key
    assert derive_key(OTHER_SECRET) != key


def test_encrypt_decrypt_roundtrip():
    payload = '{"session": {"token": "abc"}, "ünïcode": "✓"}'
    assert decrypt(encrypt(payload, SECRET), SECRET) == payload


def test_encrypt_uses_fresh_nonce():
    """Same plaintext, same key → different ciphertexts."""
    a = encrypt("same plaintext", SECRET)
    b = encrypt("same plaintext", SECRET)
    assert a != b
    assert from_base64url(a)[:NONCE_SIZE] != from_base64url(b)[:NONCE_SIZE]


def test_ciphertext_layout():
    token = encrypt("hello", SECRET)
    assert "=" not in token
    assert len(from_base64url(token)) == NONCE_SIZE + len("hello") + TAG_SIZE


def test_decrypt_with_wrong_secret_fails():
    assert decrypt(encrypt("hello", SECRET), OTHER_SECRET) is None


@pytest.mark.parametrize("position", [0, NONCE_SIZE, -1])
def test_decrypt_tampered_byte_fails(position):
    """Flipping a nonce, ciphertext, or tag byte is detected."""
    data = bytearray(from_base64url(encrypt("hello world", SECRET)))
    data[position] ^= 0x01
    assert decrypt(to_base64url(bytes(data)), SECRET) is None


def test_decrypt_truncated_fails():
    data = from_base64url(encrypt("hello world", SECRET))
    assert decrypt(to_base64url(data[:-1]), SECRET) is None
    assert decrypt(to_base64url(data[: NONCE_SIZE + TAG_SIZE - 1]), SECRET) is None


@pytest.mark.parametrize("bad", ["", "!!!not-base64!!!", "a", "é"])
def test_decrypt_malformed_input_fails(bad):
    assert decrypt(bad, SECRET) is None


# ═══════════════════════════════════════════════════════════
# Signing
# ═══════════════════════════════════════════════════════════


def test_sign_and_verify():
    signed = sign("token123", SECRET)
    value, signature = signed.rsplit(".", 1)
    assert value == "token123"
    assert "=" not in signature
    assert verify_signature("token123", signature, SECRET)


def test_verify_rejects_mutations():
    signature = generate_signature("payload", SECRET)
    assert not verify_signature("payload2", signature, SECRET)
    flipped = ("B" if signature[0] == "A" else "A") + signature[1:]
    assert not verify_signature("payload", flipped, SECRET)
    assert not verify_signature("payload", signature[:-2], SECRET)
    assert not verify_signature("payload", signature, OTHER_SECRET)


def test_unsign_roundtrip_with_dotted_value():
    assert unsign(sign("a.b.c", SECRET), SECRET) == "a.b.c"


@pytest.mark.parametrize(
    "signed",
    [None, "", "   ", "nodot", ".sigonly", "value.", "token123.bogus"],
)
def test_unsign_rejects_malformed(signed):
    assert unsign(signed, SECRET) is None


def test_unsign_rejects_other_secret():
    assert unsign(sign("token123", OTHER_SECRET), SECRET) is None


# ═══════════════════════════════════════════════════════════
# Random strings
# ═══════════════════════════════════════════════════════════


def test_random_string_session_token_shape():
    token = random_string(32, "a-z", "A-Z", "0-9")
    assert len(token) == 32
    assert re.fullmatch(r"[a-zA-Z0-9]+", token)


def test_random_string_single_alphabet():
    assert re.fullmatch(r"[0-9]{50}", random_string(50, "0-9"))


def test_random_string_defaults_to_all_alphabets():
    assert re.fullmatch(r"[a-zA-Z0-9\-_]{200}", random_string(200))


def test_random_string_is_random():
    assert len({random_string(32) for _ in range(20)}) == 20


@pytest.mark.parametrize("length", [0, -1])
def test_random_string_rejects_bad_length(length):
    with pytest.raises(ValueError):
        random_string(length)


def test_random_string_rejects_unknown_alphabet():
    with pytest.raises(ValueError):
        random_string(10, "a-f")
