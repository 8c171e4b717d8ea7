"""Cookie envelope and cookie naming tests."""

import base64
import json
from datetime import timedelta

import pytest
from fastapi import Response

from conftest import make_settings
from warden.auth.cookies import SessionCookies, build_session_envelope, open_session_envelope
from warden.config import CookieCacheMode
from warden.crypto import decrypt
from warden.crypto.aead import from_base64url, to_base64url
from warden.db.models import utcnow
from warden.schemas.session import SessionDto, SessionSnapshot, UserDto


def make_snapshot() -> SessionSnapshot:
    now = utcnow()
    return SessionSnapshot(
        session=SessionDto(
            id="s-1",
            token="T" * 32,
            user_id="u-1",
            expires_at=now + timedelta(days=7),
            created_at=now,
            updated_at=now,
        ),
        user=UserDto(
            id="u-1",
            name="Ada",
            email="ada@example.com",
            created_at=now,
            updated_at=now,
        ),
    )


# ═══════════════════════════════════════════════════════════
# Envelope
# ═══════════════════════════════════════════════════════════


def test_compact_envelope_is_readable_and_signed():
    settings = make_settings(cookie_cache_enabled=True)
    value = build_session_envelope(make_snapshot(), settings)

    envelope = json.loads(from_base64url(value))
    assert set(envelope) == {"signature", "snapshot", "expiresAt"}
    assert envelope["snapshot"]["user"]["email"] == "ada@example.com"
    assert envelope["snapshot"]["version"] == "1"

    opened = open_session_envelope(value, settings)
    assert opened.user.email == "ada@example.com"
    assert opened.session.token == "T" * 32


def test_encrypted_envelope_is_opaque():
    settings = make_settings(cookie_cache_mode=CookieCacheMode.ENCRYPTED)
    value = build_session_envelope(make_snapshot(), settings)

    assert b"ada@example.com" not in value.encode()
    assert "ada@example.com" in decrypt(value, settings.secret)
    assert open_session_envelope(value, settings).user.id == "u-1"


def test_tampered_compact_envelope_is_rejected():
    settings = make_settings()
    envelope = json.loads(from_base64url(build_session_envelope(make_snapshot(), settings)))
    envelope["snapshot"]["user"]["email"] = "mallory@example.com"

    assert open_session_envelope(to_base64url(json.dumps(envelope)), settings) is None


def test_expired_envelope_is_rejected():
    settings = make_settings(cookie_cache_max_age=60)
    value = build_session_envelope(make_snapshot(), settings)
    assert open_session_envelope(value, settings, now=utcnow() + timedelta(seconds=61)) is None


def test_envelope_version_mismatch_is_rejected():
    value = build_session_envelope(make_snapshot(), make_settings(cookie_cache_version="1"))
    assert open_session_envelope(value, make_settings(cookie_cache_version="2")) is None


def test_envelope_from_another_secret_is_rejected():
    value = build_session_envelope(make_snapshot(), make_settings())
    other = make_settings(secret="a-completely-different-secret-of-32-bytes+")
    assert open_session_envelope(value, other) is None


def test_envelope_mode_mismatch_is_rejected():
    compact = build_session_envelope(make_snapshot(), make_settings())
    encrypted_settings = make_settings(cookie_cache_mode=CookieCacheMode.ENCRYPTED)
    assert open_session_envelope(compact, encrypted_settings) is None


@pytest.mark.parametrize(
    "value",
    [None, "", "!!!", to_base64url("not json"), to_base64url("[]"), to_base64url('{"a": 1}')],
)
def test_garbage_envelope_is_rejected(value):
    assert open_session_envelope(value, make_settings()) is None


def test_envelope_is_plain_base64url():
    value = build_session_envelope(make_snapshot(), make_settings())
    assert "=" not in value
    # Standard decoder agrees once padding is restored
    base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


# ═══════════════════════════════════════════════════════════
# Cookie names and attributes
# ═══════════════════════════════════════════════════════════


def test_development_cookie_names():
    cookies = SessionCookies(make_settings())
    assert cookies.session_token_name == "warden.session_token"
    assert cookies.session_data_name == "warden.session_data"
    assert cookies.dont_remember_name == "warden.dont_remember"
    assert cookies.secure is False


def test_production_cookies_use_host_prefix():
    cookies = SessionCookies(
        make_settings(environment="production", secret="p" * 48)
    )
    assert cookies.session_token_name == "__Host-warden.session_token"
    assert cookies.secure is True

    response = Response()
    cookies.set_session_cookie(response, "T" * 32, utcnow() + timedelta(days=7))
    header = response.headers["set-cookie"]
    assert header.startswith("__Host-warden.session_token=")
    assert "Secure" in header
    assert "HttpOnly" in header
    assert "Path=/" in header
    assert "Domain" not in header


def test_remembered_cookie_is_persistent():
    cookies = SessionCookies(make_settings())
    response = Response()
    cookies.set_session_cookie(response, "T" * 32, utcnow() + timedelta(days=7), remember_me=True)

    headers = response.headers.getlist("set-cookie")
    token_cookie = next(h for h in headers if h.startswith("warden.session_token="))
    assert "Max-Age=" in token_cookie
    # A stale dont_remember cookie is cleared
    assert any(h.startswith("warden.dont_remember=") and "Max-Age=0" in h for h in headers)


def test_unremembered_cookie_is_browser_session():
    settings = make_settings()
    cookies = SessionCookies(settings)
    response = Response()
    cookies.set_session_cookie(response, "T" * 32, utcnow() + timedelta(days=1), remember_me=False)

    headers = response.headers.getlist("set-cookie")
    token_cookie = next(h for h in headers if h.startswith("warden.session_token="))
    assert "Max-Age" not in token_cookie
    assert any(h.startswith("warden.dont_remember=true.") for h in headers)


def test_cookie_cache_only_when_enabled():
    response = Response()
    SessionCookies(make_settings()).set_cookie_cache(response, make_snapshot())
    assert "set-cookie" not in response.headers

    SessionCookies(make_settings(cookie_cache_enabled=True)).set_cookie_cache(response, make_snapshot())
    assert response.headers["set-cookie"].startswith("warden.session_data=")


def test_clear_session_cookies_expires_all_three():
    response = Response()
    SessionCookies(make_settings()).clear_session_cookies(response)
    headers = response.headers.getlist("set-cookie")
    assert len(headers) == 3
    assert all("Max-Age=0" in h for h in headers)
