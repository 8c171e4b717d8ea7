"""Session cookies and the session_data envelope.

Learn: Three cookies travel with an authenticated browser:
- session_token:  "<token>.<hmac>" — the only credential the server trusts
- session_data:   signed (compact) or encrypted snapshot of session + user,
                  only when the cookie cache is enabled
- dont_remember:  signed "true" when the user did not ask to be remembered

Outside development the names carry the __Host- prefix, which browsers
accept only with Secure, Path=/ and no Domain, so a sibling subdomain
cannot plant or overwrite them.

The envelope is signed over {expiresAt, snapshot} and wrapped as
{signature, snapshot, expiresAt}. Request authentication does not read it;
cache and store stay the authority so revocation is immediate.
"""

import json
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request, Response
from pydantic import ValidationError

from warden.config import CookieCacheMode, Settings
from warden.crypto import decrypt, encrypt, generate_signature, sign, unsign, verify_signature
from warden.crypto.aead import from_base64url, to_base64url
from warden.db.models import utcnow
from warden.schemas.session import SessionSnapshot

COOKIE_PREFIX = "warden"
SECURE_COOKIE_PREFIX = "__Host-"


def _canonical_json(value) -> str:
    # Signatures are computed over this exact serialization
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _unix_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


# ─── Envelope ─────────────────────────────────────────────


def build_session_envelope(
    snapshot: SessionSnapshot, settings: Settings, now: Optional[datetime] = None
) -> str:
    """Serialize, sign, and protect a snapshot for the session_data cookie."""
    now = now or utcnow()
    payload = {
        "session": snapshot.session.model_dump(mode="json"),
        "user": snapshot.user.model_dump(mode="json"),
        "updatedAt": _unix_ms(now),
        "version": settings.cookie_cache_version,
    }
    expires_at = _unix_ms(now + timedelta(seconds=settings.cookie_cache_max_age))
    signature = generate_signature(
        _canonical_json({"expiresAt": expires_at, "snapshot": payload}),
        settings.secret,
    )
    envelope = _canonical_json(
        {"signature": signature, "snapshot": payload, "expiresAt": expires_at}
    )
    if settings.cookie_cache_mode == CookieCacheMode.ENCRYPTED:
        return encrypt(envelope, settings.secret)
    return to_base64url(envelope)


def open_session_envelope(
    value: Optional[str], settings: Settings, now: Optional[datetime] = None
) -> Optional[SessionSnapshot]:
    """Inverse of build_session_envelope(). None for anything not fully valid.

    Rejects bad encoding, failed decryption, a wrong signature, an expired
    envelope, and a snapshot built under another cookie_cache_version.
    """
    if not value:
        return None

    if settings.cookie_cache_mode == CookieCacheMode.ENCRYPTED:
        raw = decrypt(value, settings.secret)
    else:
        try:
            raw = from_base64url(value).decode("utf-8")
        except ValueError:
            raw = None
    if raw is None:
        return None

    try:
        envelope = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(envelope, dict):
        return None

    signature = envelope.get("signature")
    payload = envelope.get("snapshot")
    expires_at = envelope.get("expiresAt")
    if (
        not isinstance(signature, str)
        or not isinstance(payload, dict)
        or not isinstance(expires_at, int)
    ):
        return None

    signed = _canonical_json({"expiresAt": expires_at, "snapshot": payload})
    if not verify_signature(signed, signature, settings.secret):
        return None
    if expires_at <= _unix_ms(now or utcnow()):
        return None
    if payload.get("version") != settings.cookie_cache_version:
        return None

    try:
        return SessionSnapshot.model_validate(
            {"session": payload.get("session"), "user": payload.get("user")}
        )
    except ValidationError:
        return None


# ─── Cookie transport ─────────────────────────────────────


class SessionCookies:
    """Reads and writes the session cookies for one configuration."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.secure = not settings.is_development
        prefix = f"{SECURE_COOKIE_PREFIX}{COOKIE_PREFIX}" if self.secure else COOKIE_PREFIX
        self.session_token_name = f"{prefix}.session_token"
        self.session_data_name = f"{prefix}.session_data"
        self.dont_remember_name = f"{prefix}.dont_remember"

    def _set(self, response: Response, name: str, value: str, max_age: Optional[int]) -> None:
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def set_session_cookie(
        self,
        response: Response,
        token: str,
        expires_at: datetime,
        remember_me: bool = True,
    ) -> None:
        """Set the signed token cookie (and dont_remember when not remembered).

        Remembered sessions get a persistent cookie that dies with the
        session; others get a browser-session cookie.
        """
        max_age = None
        if remember_me:
            max_age = max(int((expires_at - utcnow()).total_seconds()), 0)
        self._set(response, self.session_token_name, sign(token, self.settings.secret), max_age)

        if remember_me:
            self._delete(response, self.dont_remember_name)
        else:
            self._set(
                response, self.dont_remember_name, sign("true", self.settings.secret), None
            )

    def set_cookie_cache(
        self, response: Response, snapshot: SessionSnapshot, remember_me: bool = True
    ) -> None:
        """Set the session_data envelope cookie when the cookie cache is on."""
        if not self.settings.cookie_cache_enabled:
            return
        envelope = build_session_envelope(snapshot, self.settings)
        max_age = self.settings.cookie_cache_max_age if remember_me else None
        self._set(response, self.session_data_name, envelope, max_age)

    def get_session_token(self, request: Request) -> Optional[str]:
        """The raw token from a correctly signed cookie, else None."""
        return unsign(request.cookies.get(self.session_token_name), self.settings.secret)

    def is_dont_remember(self, request: Request) -> bool:
        value = unsign(request.cookies.get(self.dont_remember_name), self.settings.secret)
        return value == "true"

    def _delete(self, response: Response, name: str) -> None:
        response.delete_cookie(
            name, path="/", secure=self.secure, httponly=True, samesite="lax"
        )

    def clear_session_cookies(self, response: Response) -> None:
        for name in (
            self.session_token_name,
            self.session_data_name,
            self.dont_remember_name,
        ):
            self._delete(response, name)
