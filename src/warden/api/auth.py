"""Auth API — email + password sign-up/sign-in and session management.

Learn: Routes for the browser session lifecycle:
- POST /auth/sign-up/email → create user (+ session when auto sign-in is on)
- POST /auth/sign-in/email → email/password → session cookies
- POST /auth/sign-out → revoke the current session, always clear cookies
- GET /auth/get-session → current {session, user} or null
- POST /auth/revoke-sessions → revoke every session of the current user
- GET /auth/verify-email → consume an emailed verification token

Handlers stay thin: they call AuthService/SessionService, turn failed
Results into {"code", "message"} responses, and manage cookies.
"""

from typing import Optional
from urllib.parse import urlsplit

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from warden.api.errors import error_response
from warden.auth.cookies import SessionCookies
from warden.auth.dependencies import (
    get_auth_service,
    get_cookies,
    get_current_session,
    get_current_session_optional,
    get_session_service,
    get_settings,
)
from warden.config import Settings
from warden.schemas.auth import (
    AuthResponse,
    SessionResponse,
    SignInEmailRequest,
    SignOutResponse,
    SignUpEmailRequest,
    VerifyEmailResponse,
)
from warden.schemas.session import SessionSnapshot, UserDto
from warden.services.auth_service import AuthService
from warden.services.session_service import SessionService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


# ─── Helpers ─────────────────────────────────────────────


def _client_info(request: Request) -> tuple[str, str]:
    ip_address = request.client.host if request.client else ""
    return ip_address, request.headers.get("user-agent", "")


def _origin(url: str) -> Optional[str]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


def safe_callback(callback: Optional[str], config: Settings) -> Optional[str]:
    """Return the callback only if it stays on a trusted origin.

    Relative paths are fine; "//host" is not relative (it is
    scheme-relative) and is treated like an absolute URL.
    """
    if not callback:
        return None
    if callback.startswith("/") and not callback.startswith("//"):
        return callback
    origin = _origin(callback)
    if origin is None:
        return None
    trusted = {_origin(o) for o in [config.base_url, *config.trusted_origins]}
    if origin in trusted:
        return callback
    logger.warning("auth.untrusted_callback", origin=origin)
    return None


# ─── Sign up ─────────────────────────────────────────────


@router.post("/sign-up/email", response_model=AuthResponse)
async def sign_up_email(
    body: SignUpEmailRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    cookies: SessionCookies = Depends(get_cookies),
    config: Settings = Depends(get_settings),
):
    """Register with email + password. Signs in when auto sign-in is on."""
    ip_address, user_agent = _client_info(request)
    result = await auth.sign_up_email(
        name=body.name,
        email=body.email,
        password=body.password,
        image=body.image,
        callback=body.callback,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    if result.is_failure:
        return error_response(result)

    signed_up = result.value
    token = None
    if signed_up.session is not None:
        # Sign-up sessions are never "remembered"
        session = signed_up.session
        token = session.token
        cookies.set_session_cookie(response, token, session.expires_at, remember_me=False)
        cookies.set_cookie_cache(
            response,
            SessionSnapshot.from_orm_pair(session, signed_up.user),
            remember_me=False,
        )

    url = safe_callback(signed_up.callback_url, config)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        user=UserDto.model_validate(signed_up.user),
        token=token,
        redirect=url is not None,
        url=url,
    )


# ─── Sign in ─────────────────────────────────────────────


@router.post("/sign-in/email", response_model=AuthResponse)
async def sign_in_email(
    body: SignInEmailRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    cookies: SessionCookies = Depends(get_cookies),
    config: Settings = Depends(get_settings),
):
    """Sign in with email + password and set the session cookies."""
    ip_address, user_agent = _client_info(request)
    result = await auth.sign_in_email(
        email=body.email,
        password=body.password,
        callback=body.callback,
        remember_me=body.remember_me,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    if result.is_failure:
        return error_response(result)

    signed_in = result.value
    session = signed_in.session
    cookies.set_session_cookie(
        response, session.token, session.expires_at, remember_me=body.remember_me
    )
    cookies.set_cookie_cache(
        response,
        SessionSnapshot.from_orm_pair(session, signed_in.user),
        remember_me=body.remember_me,
    )

    url = safe_callback(signed_in.callback_url, config)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        user=UserDto.model_validate(signed_in.user),
        token=session.token,
        redirect=url is not None,
        url=url,
    )


# ─── Sign out ────────────────────────────────────────────


@router.post("/sign-out", response_model=SignOutResponse)
async def sign_out(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    cookies: SessionCookies = Depends(get_cookies),
):
    """Revoke the current session. Cookies are cleared whatever happens."""
    token = cookies.get_session_token(request)
    if token:
        result = await auth.sign_out(token)
        if result.is_failure:
            reply = error_response(result)
            cookies.clear_session_cookies(reply)
            return reply

    reply = JSONResponse(
        content=SignOutResponse().model_dump(),
        headers={"Cache-Control": "no-store"},
    )
    cookies.clear_session_cookies(reply)
    return reply


# ─── Current session ─────────────────────────────────────


@router.get("/get-session", response_model=Optional[SessionResponse])
async def get_session(
    response: Response,
    snapshot: Optional[SessionSnapshot] = Depends(get_current_session_optional),
):
    """Current session + user, or null for anonymous requests."""
    response.headers["Cache-Control"] = "no-store"
    if snapshot is None:
        return None
    return SessionResponse(session=snapshot.session, user=snapshot.user)


@router.post("/revoke-sessions", response_model=SignOutResponse)
async def revoke_sessions(
    snapshot: SessionSnapshot = Depends(get_current_session),
    sessions: SessionService = Depends(get_session_service),
    cookies: SessionCookies = Depends(get_cookies),
):
    """Sign the current user out everywhere. Cookies are cleared whatever happens."""
    result = await sessions.revoke_all_sessions(snapshot.user.id)
    if result.is_failure:
        reply = error_response(result)
    else:
        reply = JSONResponse(
            content=SignOutResponse().model_dump(),
            headers={"Cache-Control": "no-store"},
        )
    cookies.clear_session_cookies(reply)
    return reply


# ─── Email verification ──────────────────────────────────


@router.get("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    token: str = "",
    callback_url: Optional[str] = Query(None, alias="callbackURL"),
    auth: AuthService = Depends(get_auth_service),
    config: Settings = Depends(get_settings),
):
    """Target of the emailed link: mark the address verified.

    Redirects to callbackURL when it is trusted, otherwise answers JSON.
    """
    result = await auth.verify_email(token)
    if result.is_failure:
        return error_response(result)

    url = safe_callback(callback_url, config)
    if url is not None:
        return RedirectResponse(url, status_code=302)
    return JSONResponse(
        content=VerifyEmailResponse(
            user=UserDto.model_validate(result.value)
        ).model_dump(mode="json"),
        headers={"Cache-Control": "no-store"},
    )
