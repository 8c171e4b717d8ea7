"""Warden CLI — operator commands for the session store.

Usage:
    warden init-db                  # Create all tables on WARDEN_DATABASE_URL
    warden gen-secret               # Print a fresh value for WARDEN_SECRET
    warden revoke-all USER_ID       # Sign a user out everywhere (store + Redis)
    warden purge-expired            # Delete expired sessions and verifications
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from typing import Optional

import click
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warden import __version__
from warden.auth.verification import purge_expired_verifications
from warden.cache import close_redis, get_cache, init_redis
from warden.config import settings
from warden.crypto import random_string
from warden.db.engine import build_engine
from warden.db.models import Base
from warden.services.session_service import SessionService

SECRET_LENGTH = 64

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop — normal CLI invocation
        return asyncio.run(coro)
    else:
        # Already inside an event loop (e.g. test runner) — run in a thread
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


database_url_option = click.option(
    "--database-url",
    default=None,
    help="Database URL (defaults to WARDEN_DATABASE_URL)",
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="warden")
def main():
    """Warden — email + password sessions and credentials."""


@main.command("init-db")
@database_url_option
def init_db(database_url: Optional[str]):
    """Create all tables (development; use alembic upgrade in production)."""
    _run(_init_db_impl(database_url or settings.database_url))
    click.secho("Tables created.", fg="green")


async def _init_db_impl(database_url: str):
    engine = build_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


@main.command("gen-secret")
def gen_secret():
    """Print a random secret suitable for WARDEN_SECRET."""
    click.echo(random_string(SECRET_LENGTH))


@main.command("revoke-all")
@click.argument("user_id")
@database_url_option
@click.option("--redis-url", default=None, help="Redis URL (defaults to WARDEN_REDIS_URL)")
def revoke_all(user_id: str, database_url: Optional[str], redis_url: Optional[str]):
    """Revoke every session of USER_ID."""
    ok = _run(
        _revoke_all_impl(
            user_id,
            database_url or settings.database_url,
            redis_url or settings.redis_url,
        )
    )
    if not ok:
        sys.exit(1)


async def _revoke_all_impl(user_id: str, database_url: str, redis_url: str) -> bool:
    try:
        await init_redis(redis_url)
    except (RedisError, OSError) as e:
        # Store-only: sessions cached elsewhere live until their TTL
        click.secho(f"Redis unavailable ({e}); revoking store sessions only.", fg="yellow")

    engine = build_engine(database_url)
    try:
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as db:
            result = await SessionService(db, settings, get_cache()).revoke_all_sessions(user_id)
    finally:
        await engine.dispose()
        await close_redis()

    if result.is_failure:
        click.secho(f"Error: {result.message}", fg="red", err=True)
        return False
    click.secho(f"Revoked all sessions for {user_id}.", fg="green")
    return True


@main.command("purge-expired")
@database_url_option
def purge_expired(database_url: Optional[str]):
    """Delete expired session and verification rows."""
    sessions, verifications = _run(
        _purge_expired_impl(database_url or settings.database_url)
    )
    click.echo(f"Purged {sessions} sessions, {verifications} verifications.")


async def _purge_expired_impl(database_url: str) -> tuple[int, int]:
    engine = build_engine(database_url)
    try:
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as db:
            sessions = await SessionService(db, settings).purge_expired_sessions()
            verifications = await purge_expired_verifications(db)
    finally:
        await engine.dispose()
    return sessions, verifications


if __name__ == "__main__":
    main()
