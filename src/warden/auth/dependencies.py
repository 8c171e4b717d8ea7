"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to build services and
resolve the current session from the request.

Authentication resolution:
1. verify the HMAC on the session_token cookie (bad or missing → anonymous)
2. look the raw token up in the cache, checking the cached expiry
3. on a cache miss, fall back to the store (session by token, then user)
Tests swap any of these through app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from warden.auth.cookies import SessionCookies
from warden.auth.password import BcryptPasswordStrategy, PasswordStrategy
from warden.auth.verification import EmailVerificationHooks
from warden.cache import Cache, get_cache
from warden.config import Settings, settings
from warden.db.engine import get_db
from warden.schemas.session import SessionSnapshot
from warden.services.auth_service import AuthService
from warden.services.session_service import SessionService

# Built once per process; strategies and hooks hold no per-request state
_password_strategy = BcryptPasswordStrategy()
_verification_hooks = EmailVerificationHooks()


def get_settings() -> Settings:
    return settings


def get_password_strategy() -> PasswordStrategy:
    return _password_strategy


def get_verification_hooks() -> EmailVerificationHooks:
    return _verification_hooks


def get_cookies(config: Settings = Depends(get_settings)) -> SessionCookies:
    return SessionCookies(config)


def get_session_service(
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
    cache: Optional[Cache] = Depends(get_cache),
) -> SessionService:
    return SessionService(db, config, cache)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
    password: PasswordStrategy = Depends(get_password_strategy),
    sessions: SessionService = Depends(get_session_service),
    verification: EmailVerificationHooks = Depends(get_verification_hooks),
) -> AuthService:
    return AuthService(
        db, config, password, sessions=sessions, verification=verification
    )


async def get_current_session_optional(
    request: Request,
    cookies: SessionCookies = Depends(get_cookies),
    sessions: SessionService = Depends(get_session_service),
) -> Optional[SessionSnapshot]:
    """Resolve the current session (optional — returns None if anonymous).

    Learn: This is the "soft" auth dependency, used by get-session, which
    answers null rather than 401 for anonymous callers.
    """
    token = cookies.get_session_token(request)
    if not token:
        return None
    return await sessions.resolve_session(token)


async def get_current_session(
    snapshot: Optional[SessionSnapshot] = Depends(get_current_session_optional),
) -> SessionSnapshot:
    """Resolve the current session (required — 401 if anonymous)."""
    if not snapshot:
        raise HTTPException(status_code=401, detail="Authentication required")
    return snapshot
