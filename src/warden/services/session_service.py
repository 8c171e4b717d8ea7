"""Session service — create, resolve, and revoke sessions across store + cache.

Learn: A session lives in up to two places:
- the store (sessions table), when store_session_in_database is on or there
  is no cache tier at all
- the cache, under key = token, holding a {session, user} snapshot whose TTL
  matches the session's remaining lifetime

Ordering rules keep readers safe:
- create: store commit happens before any cache write, so nobody can see a
  cached session the store does not know about
- revoke: cache delete happens before store delete, so nobody can see a
  store-less session that is still served from cache

A third cache key, active-sessions-{user_id}, indexes a user's tokens so
revoke_all_sessions() can find them. It is updated with an unlocked
read-modify-write loop (3 attempts, verify-read after each write). Lost
updates only make bulk revocation less complete; a session missing from the
registry still authenticates and still revokes individually.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.cache import Cache
from warden.config import Settings
from warden.crypto import random_string
from warden.db.models import Session, User, new_id, utcnow
from warden.errors import ErrorCode
from warden.result import Result, err, ok
from warden.schemas.session import (
    SessionReference,
    SessionRegistry,
    SessionSnapshot,
)

logger = structlog.get_logger()

REGISTRY_KEY_PREFIX = "active-sessions-"
MAX_REGISTRY_ATTEMPTS = 3
SESSION_TOKEN_LENGTH = 32
DONT_REMEMBER_LIFETIME = timedelta(days=1)

# Faults the cache tier can raise; anything else is a bug and propagates.
CACHE_ERRORS = (RedisError, OSError)


def registry_key(user_id: str) -> str:
    return f"{REGISTRY_KEY_PREFIX}{user_id}"


def to_unix_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def ttl_seconds(expires_at_ms: int, now_ms: int) -> int:
    """Seconds until expiry, rounded up so keys never die early."""
    return math.ceil((expires_at_ms - now_ms) / 1000)


def token_hint(token: str) -> str:
    """Loggable prefix of a token. Full tokens never reach the logs."""
    return f"{token[:6]}…"


class SessionService:
    """Manages sessions in the store and cache tiers."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        cache: Optional[Cache] = None,
    ):
        self.db = db
        self.settings = settings
        self.cache = cache

    @property
    def uses_store(self) -> bool:
        """Sessions hit the store when configured to, or when there is no cache."""
        return self.settings.store_session_in_database or self.cache is None

    # ─── Create ───────────────────────────────────────────

    async def create_session(
        self,
        user: User,
        ip_address: str = "",
        user_agent: str = "",
        dont_remember_me: bool = False,
    ) -> Result[Session]:
        """Mint a session for a user and write it to store, then cache.

        Learn: dont_remember_me caps the lifetime at one day (the cookie is
        browser-session scoped anyway). Otherwise the configured lifetime
        applies, 7 days when unset.
        """
        # A rollback expires `user`; only this copy is safe to log afterwards
        user_id = user.id
        logger.debug("session.creating", user_id=user_id)

        now = utcnow()
        lifetime = (
            DONT_REMEMBER_LIFETIME
            if dont_remember_me
            else timedelta(seconds=self.settings.effective_session_expires_in)
        )
        session = Session(
            id=new_id(),
            token=random_string(SESSION_TOKEN_LENGTH, "a-z", "A-Z", "0-9"),
            user_id=user_id,
            expires_at=now + lifetime,
            ip_address=ip_address or "",
            user_agent=user_agent or "",
            created_at=now,
            updated_at=now,
        )

        # 1. Store first, so the cache never runs ahead of it
        if self.uses_store:
            self.db.add(session)
            try:
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                logger.error("session.create_failed", user_id=user_id, exc_info=True)
                return err(ErrorCode.INTERNAL_ERROR, "Failed to save session.")

        # 2. Cache: registry (best effort) + snapshot
        if self.cache is not None:
            cached = await self._cache_new_session(session, user, now)
            if not cached and not self.uses_store:
                # Cache is the only home for this session; without it the
                # session does not exist.
                return err(ErrorCode.INTERNAL_ERROR, "Failed to save session.")

        logger.info("session.created", session_id=session.id, user_id=user_id)
        return ok(session)

    async def _cache_new_session(
        self, session: Session, user: User, now: datetime
    ) -> bool:
        """Write registry + snapshot. Returns False when the snapshot write failed."""
        now_ms = to_unix_ms(now)
        expires_ms = to_unix_ms(session.expires_at)

        if expires_ms > now_ms:
            try:
                registered = await self._register_token(
                    user.id, session.token, expires_ms, now_ms
                )
            except CACHE_ERRORS:
                logger.warning(
                    "session.registry_write_error", user_id=user.id, exc_info=True
                )
                registered = False
            if not registered:
                logger.warning(
                    "session.registry_update_failed",
                    user_id=user.id,
                    session_id=session.id,
                    attempts=MAX_REGISTRY_ATTEMPTS,
                )

        # The snapshot is written regardless of what happened to the registry
        snapshot_ttl = ttl_seconds(expires_ms, now_ms)
        if snapshot_ttl <= 0:
            return True
        snapshot = SessionSnapshot.from_orm_pair(session, user)
        try:
            await self.cache.set(session.token, snapshot.model_dump_json(), snapshot_ttl)
        except CACHE_ERRORS:
            logger.warning(
                "session.snapshot_write_failed",
                session_id=session.id,
                user_id=user.id,
                exc_info=True,
            )
            return False
        return True

    async def _register_token(
        self, user_id: str, token: str, expires_ms: int, now_ms: int
    ) -> bool:
        """Optimistic registry update: read, merge, write, verify-read."""
        key = registry_key(user_id)
        for attempt in range(1, MAX_REGISTRY_ATTEMPTS + 1):
            refs = [
                ref
                for ref in await self._read_registry(key)
                if ref.expires_at > now_ms and ref.token != token
            ]
            refs.append(SessionReference(token=token, expires_at=expires_ms))
            refs.sort(key=lambda ref: ref.expires_at)

            registry_ttl = ttl_seconds(refs[-1].expires_at, now_ms)
            if registry_ttl <= 0:
                # Nothing worth indexing; retrying cannot change that
                return False

            await self.cache.set(key, _dump_registry(refs), registry_ttl)

            written = await self._read_registry(key)
            if any(ref.token == token for ref in written):
                return True
            logger.debug("session.registry_retry", user_id=user_id, attempt=attempt)
        return False

    async def _read_registry(self, key: str) -> list[SessionReference]:
        raw = await self.cache.get(key)
        if not raw or not raw.strip():
            return []
        try:
            return SessionRegistry.validate_json(raw)
        except ValidationError:
            logger.warning("session.registry_corrupt", key=key)
            return []

    # ─── Resolve ──────────────────────────────────────────

    async def resolve_session(self, token: str) -> Optional[SessionSnapshot]:
        """Find the live session for a token: cache first, then the store.

        Returns None when neither tier has an unexpired session. Used by the
        request authentication path; never raises for store/cache faults.
        """
        snapshot = await self._resolve_from_cache(token)
        if snapshot is None:
            snapshot = await self._resolve_from_store(token)
        return snapshot

    async def _resolve_from_cache(self, token: str) -> Optional[SessionSnapshot]:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(token)
        except CACHE_ERRORS:
            logger.warning("session.cache_read_failed", token=token_hint(token), exc_info=True)
            return None
        if not raw or not raw.strip():
            return None
        try:
            snapshot = SessionSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("session.snapshot_corrupt", token=token_hint(token))
            return None
        if snapshot.session.token != token or snapshot.session.expires_at <= utcnow():
            return None
        return snapshot

    async def _resolve_from_store(self, token: str) -> Optional[SessionSnapshot]:
        if not self.uses_store:
            return None
        try:
            session = await self.db.scalar(select(Session).where(Session.token == token))
            if session is None or session.expires_at <= utcnow():
                return None
            user = await self.db.get(User, session.user_id)
        except SQLAlchemyError:
            logger.error("session.store_read_failed", token=token_hint(token), exc_info=True)
            return None
        if user is None:
            return None
        return SessionSnapshot.from_orm_pair(session, user)

    # ─── Revoke ───────────────────────────────────────────

    async def revoke_session(self, user_id: str, token: str) -> Result[None]:
        """Revoke one session: cache entry → registry → store row.

        Learn: Cache faults are logged and skipped; the store delete is the
        only step whose failure fails the call.
        """
        logger.debug("session.revoking", user_id=user_id, token=token_hint(token))

        if self.cache is not None:
            # 1. Drop the snapshot first: in-flight requests stop authenticating
            try:
                await self.cache.delete(token)
            except CACHE_ERRORS:
                logger.warning(
                    "session.cache_delete_failed", token=token_hint(token), exc_info=True
                )

            # 2. Shrink the registry (and its TTL) or drop it when empty
            try:
                await self._unregister_token(user_id, token)
            except CACHE_ERRORS:
                logger.warning(
                    "session.registry_write_error", user_id=user_id, exc_info=True
                )

        # 3. Store row
        if self.uses_store:
            try:
                row = await self.db.scalar(
                    select(Session).where(
                        Session.token == token, Session.user_id == user_id
                    )
                )
                if row is not None:
                    await self.db.delete(row)
                    await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                logger.error(
                    "session.revoke_failed", token=token_hint(token), exc_info=True
                )
                return err(ErrorCode.INTERNAL_ERROR, "Failed to revoke session.")

        logger.info("session.revoked", user_id=user_id, token=token_hint(token))
        return ok()

    async def _unregister_token(self, user_id: str, token: str) -> None:
        key = registry_key(user_id)
        now_ms = to_unix_ms(utcnow())
        refs = [
            ref
            for ref in await self._read_registry(key)
            if ref.token != token and ref.expires_at > now_ms
        ]
        if not refs:
            await self.cache.delete(key)
            return

        refs.sort(key=lambda ref: ref.expires_at)
        registry_ttl = ttl_seconds(refs[-1].expires_at, now_ms)
        if registry_ttl > 0:
            await self.cache.set(key, _dump_registry(refs), registry_ttl)
        else:
            await self.cache.delete(key)

    async def revoke_all_sessions(self, user_id: str) -> Result[None]:
        """Revoke every session of a user that the registry and store know about."""
        logger.debug("session.revoking_all", user_id=user_id)
        cache_failed = False

        # 1. Cached snapshots via the registry, then the registry itself
        if self.cache is not None:
            key = registry_key(user_id)
            try:
                for ref in await self._read_registry(key):
                    await self.cache.delete(ref.token)
                await self.cache.delete(key)
            except CACHE_ERRORS:
                cache_failed = True
                logger.error("session.revoke_all_cache_failed", user_id=user_id, exc_info=True)

        # 2. Store rows (still attempted when the cache step failed)
        if self.uses_store:
            try:
                await self.db.execute(delete(Session).where(Session.user_id == user_id))
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                logger.error("session.revoke_all_failed", user_id=user_id, exc_info=True)
                return err(ErrorCode.INTERNAL_ERROR, "Failed to revoke sessions.")

        if cache_failed:
            return err(ErrorCode.INTERNAL_ERROR, "Failed to revoke cached sessions.")

        logger.info("session.revoked_all", user_id=user_id)
        return ok()

    # ─── Maintenance ──────────────────────────────────────

    async def purge_expired_sessions(self) -> int:
        """Delete expired store rows. Returns how many were removed."""
        result = await self.db.execute(
            delete(Session).where(Session.expires_at <= utcnow())
        )
        await self.db.commit()
        logger.info("session.purged_expired", count=result.rowcount)
        return result.rowcount


def _dump_registry(refs: list[SessionReference]) -> str:
    return SessionRegistry.dump_json(refs, by_alias=True).decode("utf-8")
