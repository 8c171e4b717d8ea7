"""Email verification hook surface.

Learn: Verification gating is OFF by default (WARDEN_REQUIRE_EMAIL_VERIFICATION
is false), so nothing here runs in the standard sign-in/sign-up flow. When an
application turns it on it supplies an async sender:

    async def send(ctx: SendVerificationEmailContext) -> None:
        await mailer.send(ctx.user.email, f"Verify: {ctx.url}")

    hooks = EmailVerificationHooks(send_verification_email=send)

Sign-in then stops unverified users after their password checks out, mints a
verification token, stores it, and hands the link to the sender. The link
lands on GET /api/v1/auth/verify-email, which consumes the token and marks
the address verified.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from warden.crypto import random_string
from warden.db.models import User, Verification, utcnow

VERIFICATION_TOKEN_LENGTH = 32


@dataclass(frozen=True)
class SendVerificationEmailContext:
    user: User
    url: str
    token: str
    callback: Optional[str] = None


SendVerificationEmail = Callable[[SendVerificationEmailContext], Awaitable[None]]


@dataclass(frozen=True)
class EmailVerificationHooks:
    """Application-supplied verification behaviour.

    send_on_sign_in: True always sends, False never sends, None follows
    require_email_verification.
    """

    send_verification_email: Optional[SendVerificationEmail] = None
    send_on_sign_in: Optional[bool] = None

    def should_send_on_sign_in(self, require_email_verification: bool) -> bool:
        if self.send_on_sign_in is None:
            return require_email_verification
        return self.send_on_sign_in


VERIFY_EMAIL_PATH = "/api/v1/auth/verify-email"


def build_verification_url(
    base_url: str, token: str, callback: Optional[str] = None
) -> str:
    params = {"token": token}
    if callback:
        params["callbackURL"] = callback
    return f"{base_url.rstrip('/')}{VERIFY_EMAIL_PATH}?{urlencode(params)}"


async def create_verification(
    db: AsyncSession, identifier: str, expires_in: int
) -> Verification:
    """Stage a verification row; the caller owns the commit."""
    now = utcnow()
    verification = Verification(
        identifier=identifier,
        value=random_string(VERIFICATION_TOKEN_LENGTH, "a-z", "A-Z", "0-9"),
        expires_at=now + timedelta(seconds=expires_in),
        created_at=now,
        updated_at=now,
    )
    db.add(verification)
    return verification


async def purge_expired_verifications(db: AsyncSession) -> int:
    """Delete verification rows past their expiry. Returns how many went."""
    result = await db.execute(
        delete(Verification).where(Verification.expires_at <= utcnow())
    )
    await db.commit()
    return result.rowcount
