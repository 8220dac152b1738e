from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from catalog_sync.config import settings

PROJECT_ROOT = Path(__file__).resolve().parents[2]

log = logging.getLogger("db")


def _prepare_sqlite_path(db_url: str) -> None:
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return
    try:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        log.exception("DB: cannot create directory for %s", url.database)


def create_engine_for(db_url: str) -> AsyncEngine:
    _prepare_sqlite_path(db_url)
    options: dict[str, object] = {"echo": False}
    if make_url(db_url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=5, max_overflow=5)
    return create_async_engine(db_url, **options)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async_engine: AsyncEngine = create_engine_for(settings.DB_URL)
async_session_factory: async_sessionmaker[AsyncSession] = make_session_factory(async_engine)


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def _run_upgrade(db_url: str) -> None:
    from alembic import command

    command.upgrade(_alembic_config(db_url), "head")


def head_revision(db_url: str | None = None) -> str | None:
    from alembic.script import ScriptDirectory

    script = ScriptDirectory.from_config(_alembic_config(db_url or settings.DB_URL))
    return script.get_current_head()


def _revision_of(connection) -> str | None:
    from alembic.runtime.migration import MigrationContext

    return MigrationContext.configure(connection).get_current_revision()


async def current_revision(engine: AsyncEngine | None = None) -> str | None:
    try:
        async with (engine or async_engine).connect() as connection:
            return await connection.run_sync(_revision_of)
    except Exception:
        log.exception("DB: reading alembic revision failed")
        return None


async def upgrade_to_head(db_url: str | None = None, *, timeout: float | None = 15.0) -> bool:
    """Apply pending migrations; a slow or broken upgrade is logged, not raised."""

    url = db_url or settings.DB_URL
    log.info("DB: upgrading schema to head")
    try:
        await asyncio.wait_for(asyncio.to_thread(_run_upgrade, url), timeout=timeout)
    except asyncio.TimeoutError:
        log.error("DB: migration timeout after %ss, continuing", timeout)
        return False
    except Exception:
        log.exception("DB: migration failed, continuing")
        return False
    log.info("DB: schema upgraded")
    return True


async def init_db(engine: AsyncEngine | None = None) -> str | None:
    """Check connectivity and migrate; returns the resulting alembic revision."""

    engine = engine or async_engine
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except Exception:
        log.exception("DB: connectivity check failed")
    else:
        log.info("DB: connectivity ok (%s)", engine.url.get_backend_name())

    if settings.MIGRATE_ON_START:
        await upgrade_to_head(settings.DB_URL)
    else:
        log.warning("DB: migrations skipped by MIGRATE_ON_START=false")

    revision = await current_revision(engine)
    log.info("DB: current revision=%s", revision or "unknown")
    try:
        head = await asyncio.to_thread(head_revision)
    except Exception:
        log.exception("DB: reading migration head failed")
    else:
        if revision != head:
            log.warning("DB: schema revision %s is behind head %s", revision, head)
    return revision


async def dispose_engine() -> None:
    await async_engine.dispose()
