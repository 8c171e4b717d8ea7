"""Auth service — email + password sign-up, sign-in, and sign-out.

Learn: The HTTP layer calls these flows and only deals with Results and
cookies. Every flow validates input before touching the store, so bad
requests never cost a database round-trip.

Sign-in is enumeration resistant. "No such user", "no credential account",
"no password hash" and "wrong password" all return the same error code, and
each of them spends one bcrypt computation on the supplied password, so the
response time does not reveal which case held either.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.auth.emails import is_valid_email, normalize_email
from warden.auth.password import PasswordStrategy
from warden.auth.verification import (
    EmailVerificationHooks,
    SendVerificationEmailContext,
    build_verification_url,
    create_verification,
)
from warden.cache import Cache
from warden.config import Settings
from warden.db.models import (
    CREDENTIAL_PROVIDER,
    Account,
    Session,
    User,
    Verification,
    new_id,
    utcnow,
)
from warden.errors import ErrorCode
from warden.result import Result, err, ok
from warden.services.session_service import SessionService, token_hint

logger = structlog.get_logger()

INVALID_EMAIL_OR_PASSWORD_MESSAGE = "Invalid email or password."


@dataclass(frozen=True)
class SignUpResult:
    user: User
    session: Optional[Session] = None
    callback_url: Optional[str] = None


@dataclass(frozen=True)
class SignInResult:
    user: User
    session: Session
    callback_url: Optional[str] = None


class AuthService:
    """Email + password flows on top of the session service."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        password: PasswordStrategy,
        cache: Optional[Cache] = None,
        sessions: Optional[SessionService] = None,
        verification: Optional[EmailVerificationHooks] = None,
    ):
        self.db = db
        self.settings = settings
        self.password = password
        self.sessions = sessions or SessionService(db, settings, cache)
        self.verification = verification or EmailVerificationHooks()

    # ─── Sign up ──────────────────────────────────────────

    async def sign_up_email(
        self,
        name: str,
        email: str,
        password: str,
        image: Optional[str] = None,
        callback: Optional[str] = None,
        ip_address: str = "",
        user_agent: str = "",
    ) -> Result[SignUpResult]:
        """Register a user with a credential account, then optionally sign in.

        Learn: The uniqueness pre-check gives a clean error in the common
        case; the unique index on users.email catches the race where two
        sign-ups for one address pass the pre-check together.
        """
        if not self.settings.email_password_enabled or self.settings.disable_sign_up:
            return err(ErrorCode.FEATURE_DISABLED, "Email and password sign up is not enabled.")

        if not email or not email.strip() or not password:
            return err(ErrorCode.INVALID_INPUT, "Email and password are required.")

        email = normalize_email(email)
        if not is_valid_email(email):
            return err(ErrorCode.INVALID_INPUT, "Invalid email.")

        invalid = await self._check_password(password)
        if invalid is not None:
            return invalid

        try:
            existing = await self.db.scalar(select(User.id).where(User.email == email))
        except SQLAlchemyError:
            logger.error("sign_up.lookup_failed", exc_info=True)
            return err(ErrorCode.INTERNAL_ERROR, "Failed to create user.")
        if existing is not None:
            logger.info("sign_up.user_exists")
            return err(ErrorCode.USER_ALREADY_EXISTS, "User already exists.")

        password_hash = await self.password.hash(password)

        # User + credential account commit together or not at all
        now = utcnow()
        user_id = new_id()
        user = User(
            id=user_id,
            name=(name or "").strip(),
            email=email,
            email_verified=False,
            image=image,
            created_at=now,
            updated_at=now,
        )
        account = Account(
            id=new_id(),
            user_id=user_id,
            account_id=user_id,
            provider_id=CREDENTIAL_PROVIDER,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        self.db.add_all([user, account])

        verification = None
        if (
            self.settings.require_email_verification
            and self.verification.send_verification_email is not None
        ):
            # Committed with the user: the link exists iff the account does
            verification = await create_verification(
                self.db, email, self.settings.verification_expires_in
            )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("sign_up.user_exists", race=True)
            return err(ErrorCode.USER_ALREADY_EXISTS, "User already exists.")
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("sign_up.save_failed", exc_info=True)
            return err(ErrorCode.INTERNAL_ERROR, "Failed to create user.")

        logger.info("sign_up.user_created", user_id=user_id)

        if self.settings.require_email_verification:
            # No session until the address is confirmed
            if verification is not None:
                await self._deliver_verification(user, verification, callback)
            return ok(SignUpResult(user=user, callback_url=callback))

        session = None
        if self.settings.auto_sign_in:
            created = await self.sessions.create_session(
                user, ip_address, user_agent, dont_remember_me=True
            )
            if created.is_failure:
                logger.error("sign_up.session_failed", user_id=user_id)
                return err(ErrorCode.FAILED_TO_CREATE_SESSION, "Failed to create session.")
            session = created.value

        return ok(SignUpResult(user=user, session=session, callback_url=callback))

    async def _check_password(self, password: str) -> Optional[Result]:
        if len(password) < self.settings.min_password_length:
            return err(ErrorCode.PASSWORD_TOO_SHORT, "Password too short.")
        if len(password) > self.settings.max_password_length:
            return err(ErrorCode.PASSWORD_TOO_LONG, "Password too long.")
        validation = await self.password.validate(password)
        if not validation.is_valid:
            return err(ErrorCode.INVALID_INPUT, validation.message or "Invalid password.")
        return None

    # ─── Sign in ──────────────────────────────────────────

    async def sign_in_email(
        self,
        email: str,
        password: str,
        callback: Optional[str] = None,
        remember_me: bool = False,
        ip_address: str = "",
        user_agent: str = "",
    ) -> Result[SignInResult]:
        """Check credentials and mint a session.

        remember_me=False gives a one-day session (and a browser-session
        cookie at the HTTP layer). The callback URL is passed through as-is;
        the HTTP layer vets it against trusted origins.
        """
        if not self.settings.email_password_enabled:
            return err(ErrorCode.FEATURE_DISABLED, "Email and password is not enabled.")

        if not email or not email.strip():
            return err(ErrorCode.INVALID_INPUT, "Email is required.")

        email = normalize_email(email)
        if not is_valid_email(email):
            return err(ErrorCode.INVALID_INPUT, "Invalid email.")

        try:
            user = await self.db.scalar(select(User).where(User.email == email))
            account = None
            if user is not None:
                account = await self.db.scalar(
                    select(Account).where(
                        Account.user_id == user.id,
                        Account.provider_id == CREDENTIAL_PROVIDER,
                    )
                )
        except SQLAlchemyError:
            logger.error("sign_in.lookup_failed", exc_info=True)
            return err(ErrorCode.INTERNAL_ERROR, "Failed to sign in.")

        if user is None or account is None or not account.password_hash:
            # Same cost as a real check: hash the supplied password anyway
            await self.password.hash(password)
            logger.info(
                "sign_in.invalid_credentials",
                reason="no_user" if user is None else "no_credential",
            )
            return err(ErrorCode.INVALID_EMAIL_OR_PASSWORD, INVALID_EMAIL_OR_PASSWORD_MESSAGE)

        # Rollbacks below expire `user`; log this copy instead
        user_id = user.id

        if not await self.password.verify(account.password_hash, password):
            logger.info("sign_in.invalid_password", user_id=user_id)
            return err(ErrorCode.INVALID_EMAIL_OR_PASSWORD, INVALID_EMAIL_OR_PASSWORD_MESSAGE)

        if self.settings.require_email_verification and not user.email_verified:
            if self.verification.should_send_on_sign_in(
                self.settings.require_email_verification
            ):
                await self._send_verification(user, callback)
            logger.info("sign_in.email_not_verified", user_id=user_id)
            return err(ErrorCode.EMAIL_NOT_VERIFIED, "Email not verified.")

        created = await self.sessions.create_session(
            user, ip_address, user_agent, dont_remember_me=not remember_me
        )
        if created.is_failure:
            logger.error("sign_in.session_failed", user_id=user_id)
            return err(ErrorCode.FAILED_TO_CREATE_SESSION, "Failed to create session.")

        logger.info("sign_in.succeeded", user_id=user_id, remember_me=remember_me)
        return ok(SignInResult(user=user, session=created.value, callback_url=callback))

    # ─── Email verification ───────────────────────────────

    async def _send_verification(self, user: User, callback: Optional[str]) -> None:
        """Store a verification token and hand the link to the app's sender."""
        if self.verification.send_verification_email is None:
            return
        user_id = user.id
        verification = await create_verification(
            self.db, user.email, self.settings.verification_expires_in
        )
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("verification.save_failed", user_id=user_id, exc_info=True)
            return
        await self._deliver_verification(user, verification, callback)

    async def _deliver_verification(
        self, user: User, verification: Verification, callback: Optional[str]
    ) -> None:
        """Await the app's sender. A failing sender never fails the flow."""
        user_id = user.id
        url = build_verification_url(self.settings.base_url, verification.value, callback)
        try:
            await self.verification.send_verification_email(
                SendVerificationEmailContext(
                    user=user, url=url, token=verification.value, callback=callback
                )
            )
        except Exception:
            logger.error("verification.send_failed", user_id=user_id, exc_info=True)
            return
        logger.info("verification.sent", user_id=user_id)

    async def verify_email(self, token: str) -> Result[User]:
        """Consume a verification token and mark its user's email verified.

        Learn: Every outstanding token for the address is deleted with it, so
        older links in the inbox stop working once one of them was used.
        """
        if not token:
            return err(ErrorCode.INVALID_TOKEN, "Invalid token.")
        try:
            verification = await self.db.scalar(
                select(Verification).where(Verification.value == token)
            )
            user = None
            if verification is not None and verification.expires_at > utcnow():
                user = await self.db.scalar(
                    select(User).where(User.email == verification.identifier)
                )
        except SQLAlchemyError:
            logger.error("verify_email.lookup_failed", exc_info=True)
            return err(ErrorCode.INTERNAL_ERROR, "Failed to verify email.")

        if user is None:
            logger.info("verify_email.invalid_token", found=verification is not None)
            return err(ErrorCode.INVALID_TOKEN, "Invalid token.")

        user_id = user.id
        user.email_verified = True
        user.updated_at = utcnow()
        try:
            await self.db.execute(
                delete(Verification).where(Verification.identifier == user.email)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("verify_email.save_failed", user_id=user_id, exc_info=True)
            return err(ErrorCode.INTERNAL_ERROR, "Failed to verify email.")

        logger.info("verify_email.verified", user_id=user_id)
        return ok(user)

    # ─── Sign out ─────────────────────────────────────────

    async def sign_out(self, token: str) -> Result[None]:
        """Revoke the session behind a (signature-verified) token."""
        if self.sessions.uses_store:
            try:
                user_id = await self.db.scalar(
                    select(Session.user_id).where(Session.token == token)
                )
            except SQLAlchemyError:
                logger.error("sign_out.lookup_failed", token=token_hint(token), exc_info=True)
                return err(ErrorCode.INTERNAL_ERROR, "Failed to sign out.")
        else:
            # Cache-only mode: the snapshot is the session record
            snapshot = await self.sessions.resolve_session(token)
            user_id = snapshot.user.id if snapshot else None

        if user_id is None:
            logger.info("sign_out.session_not_found", token=token_hint(token))
            return err(ErrorCode.SESSION_NOT_FOUND, "Session not found.")
        return await self.sessions.revoke_session(user_id, token)
