from __future__ import annotations

import asyncio
import logging

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from catalog_sync.db import session as session_module


@pytest.mark.asyncio
async def test_init_db_survives_migration_timeout(monkeypatch, caplog: pytest.LogCaptureFixture) -> None:
    class _Stalled:
        def __await__(self):
            return asyncio.sleep(0).__await__()

        def close(self) -> None:
            return None

    real_to_thread = asyncio.to_thread
    real_wait_for = asyncio.wait_for

    def fake_to_thread(func, *args, **kwargs):  # noqa: ANN001
        if func is session_module._run_upgrade:
            return _Stalled()
        return real_to_thread(func, *args, **kwargs)

    async def fake_wait_for(awaitable, timeout):  # noqa: ANN001
        if not isinstance(awaitable, _Stalled):
            return await real_wait_for(awaitable, timeout)
        awaitable.close()
        raise asyncio.TimeoutError

    async def fake_revision(engine=None):  # noqa: ANN001
        return "0001_catalog_tables"

    monkeypatch.setattr(session_module.asyncio, "to_thread", fake_to_thread)
    monkeypatch.setattr(session_module.asyncio, "wait_for", fake_wait_for)
    monkeypatch.setattr(session_module, "current_revision", fake_revision)
    monkeypatch.setattr(session_module.settings, "MIGRATE_ON_START", True)

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        with caplog.at_level(logging.INFO, logger="db"):
            revision = await session_module.init_db(engine)
    finally:
        await engine.dispose()

    assert revision == "0001_catalog_tables"
    messages = [record.getMessage() for record in caplog.records if record.name == "db"]
    assert any("connectivity ok" in message for message in messages)
    assert any("migration timeout" in message for message in messages)
    assert not any("behind head" in message for message in messages)


@pytest.mark.asyncio
async def test_init_db_skips_migrations_by_flag(monkeypatch, caplog: pytest.LogCaptureFixture) -> None:
    upgrades: list[str] = []

    async def fake_upgrade(*args, **kwargs):  # noqa: ANN001
        upgrades.append("called")
        return True

    monkeypatch.setattr(session_module, "upgrade_to_head", fake_upgrade)
    monkeypatch.setattr(session_module.settings, "MIGRATE_ON_START", False)

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        with caplog.at_level(logging.INFO, logger="db"):
            assert await session_module.init_db(engine) is None
    finally:
        await engine.dispose()

    assert upgrades == []
    messages = [record.getMessage() for record in caplog.records if record.name == "db"]
    assert any("migrations skipped" in message for message in messages)
    # Пустая база отстаёт от головной ревизии
    assert any("behind head 0001_catalog_tables" in message for message in messages)


def test_head_revision_matches_migrations() -> None:
    assert session_module.head_revision() == "0001_catalog_tables"
