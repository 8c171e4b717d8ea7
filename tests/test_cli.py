"""CLI tests — run the click commands against a throwaway SQLite file."""

import asyncio
import re
from datetime import timedelta

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from warden.cli.main import main
from warden.db.models import Session, User, Verification, new_id, utcnow


@pytest.fixture()
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'warden.db'}"


def run_sql(db_url, fn):
    """Run an async callback against the database file in a fresh loop."""

    async def _go():
        engine = create_async_engine(db_url)
        try:
            factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with factory() as db:
                return await fn(db)
        finally:
            await engine.dispose()

    return asyncio.run(_go())


def test_gen_secret():
    result = CliRunner().invoke(main, ["gen-secret"])
    assert result.exit_code == 0
    assert re.fullmatch(r"[A-Za-z0-9\-_]{64}", result.output.strip())


def test_init_db_and_purge_expired(db_url):
    runner = CliRunner()
    assert runner.invoke(main, ["init-db", "--database-url", db_url]).exit_code == 0

    async def seed(db):
        user = User(email="cli@example.com", name="CLI")
        db.add(user)
        await db.flush()
        now = utcnow()
        db.add_all(
            [
                Session(id=new_id(), token="live" * 8, user_id=user.id,
                        expires_at=now + timedelta(days=1), created_at=now, updated_at=now),
                Session(id=new_id(), token="dead" * 8, user_id=user.id,
                        expires_at=now - timedelta(days=1), created_at=now, updated_at=now),
                Verification(identifier="cli@example.com", value="v" * 32,
                             expires_at=now - timedelta(minutes=1)),
            ]
        )
        await db.commit()

    run_sql(db_url, seed)

    result = runner.invoke(main, ["purge-expired", "--database-url", db_url])
    assert result.exit_code == 0
    assert "Purged 1 sessions, 1 verifications." in result.output

    async def remaining(db):
        return await db.scalar(select(func.count()).select_from(Session))

    assert run_sql(db_url, remaining) == 1


def test_revoke_all_store_only(db_url):
    runner = CliRunner()
    runner.invoke(main, ["init-db", "--database-url", db_url])

    async def seed(db):
        user = User(email="cli@example.com", name="CLI")
        db.add(user)
        await db.flush()
        now = utcnow()
        for i in range(2):
            db.add(Session(id=new_id(), token=f"tok{i}" * 8, user_id=user.id,
                           expires_at=now + timedelta(days=1), created_at=now, updated_at=now))
        await db.commit()
        return user.id

    user_id = run_sql(db_url, seed)

    # Nothing listens on port 1: the command falls back to store-only
    result = runner.invoke(
        main,
        ["revoke-all", user_id, "--database-url", db_url, "--redis-url", "redis://127.0.0.1:1/0"],
    )
    assert result.exit_code == 0, result.output
    assert "Revoked all sessions" in result.output

    async def remaining(db):
        return await db.scalar(select(func.count()).select_from(Session))

    assert run_sql(db_url, remaining) == 0
