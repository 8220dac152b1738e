"""Test configuration helpers."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# До импорта настроек: тесты не должны трогать ./var и реальный сертификат
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MIGRATE_ON_START", "false")
os.environ.setdefault("BALANCE_API_CERT_PATH", str(ROOT / "tests" / "_missing_cert.p12"))
os.environ.setdefault("SENTRY_DSN", "")


def pytest_configure(config: pytest.Config) -> None:
    """Register the asyncio marker for the lightweight runner below."""

    config.addinivalue_line("markers", "asyncio: execute the test inside an event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute ``@pytest.mark.asyncio`` tests without requiring pytest-asyncio."""

    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None

    func = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(func):
        return None

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        argnames = pyfuncitem._fixtureinfo.argnames
        loop.run_until_complete(func(**{name: pyfuncitem.funcargs[name] for name in argnames}))
    finally:
        asyncio.set_event_loop(None)
        loop.close()
    return True
