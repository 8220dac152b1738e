from __future__ import annotations

import asyncio
import errno
import importlib
import importlib.util
import logging
import signal
import socket
from contextlib import suppress

from catalog_sync.config import settings
from catalog_sync.db.session import async_session_factory, dispose_engine, init_db
from catalog_sync.logging_config import resolve_log_level, setup_logging
from catalog_sync.scheduler.service import CatalogSyncScheduler
from catalog_sync.services.catalog_sync import CatalogSyncService, build_sync_service

startup_log = logging.getLogger("startup")

_sentry_spec = importlib.util.find_spec("sentry_sdk")
if _sentry_spec is not None:
    sentry_sdk = importlib.import_module("sentry_sdk")
else:  # pragma: no cover - optional dependency
    sentry_sdk = None


def _init_sentry() -> None:
    if sentry_sdk is None:
        startup_log.info("sentry disabled: library not installed")
        return

    dsn = settings.SENTRY_DSN
    if not dsn:
        return

    init_kwargs: dict[str, object] = {
        "dsn": dsn,
        "traces_sample_rate": settings.SENTRY_TRACES_SAMPLE_RATE,
    }
    if settings.ENVIRONMENT:
        init_kwargs["environment"] = settings.ENVIRONMENT
    sentry_sdk.init(**init_kwargs)


def _resolve_port(host: str, port: int) -> int:
    if port == 0:
        return port
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, port))
    except OSError as exc:
        if getattr(exc, "errno", None) in (errno.EADDRINUSE, 10048):
            startup_log.warning("dashboard port %s busy, using ephemeral 0", port)
            return 0
        raise
    return port


async def _start_dashboard_server(
    service: CatalogSyncService,
    scheduler: CatalogSyncScheduler | None,
) -> tuple[object | None, asyncio.Task | None]:
    if not settings.DASHBOARD_ENABLED:
        return None, None
    if not settings.DASHBOARD_TOKEN:
        startup_log.info("dashboard disabled: DASHBOARD_TOKEN is not configured")
        return None, None

    import uvicorn

    from catalog_sync.dashboard import create_app

    app = create_app(service, scheduler=scheduler, session_factory=async_session_factory)
    host = settings.DASHBOARD_HOST
    port = _resolve_port(host, settings.DASHBOARD_PORT)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        loop="asyncio",
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve())
    startup_log.info("dashboard server starting at http://%s:%s/admin/catalog", host, port)
    return server, task


def _install_stop_signals(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)


async def main() -> None:
    setup_logging(settings.LOG_DIR, resolve_log_level(settings.LOG_LEVEL))
    _init_sentry()
    startup_log.info("catalog sync service starting, env=%s", settings.ENVIRONMENT)

    await init_db()

    service = build_sync_service(settings, async_session_factory)
    scheduler: CatalogSyncScheduler | None = None
    if settings.CATALOG_SYNC_ENABLED:
        scheduler = CatalogSyncScheduler(service, settings)
        scheduler.start()
    else:
        startup_log.warning("catalog sync scheduler disabled by CATALOG_SYNC_ENABLED")

    server, server_task = await _start_dashboard_server(service, scheduler)

    stop = asyncio.Event()
    _install_stop_signals(stop)
    waiters = [asyncio.create_task(stop.wait())]
    if server_task is not None:
        # uvicorn перехватывает SIGINT сам и просто завершает serve()
        waiters.append(server_task)
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        startup_log.info("catalog sync service shutting down")
        if scheduler is not None:
            scheduler.stop()
        if server is not None:
            server.should_exit = True  # type: ignore[attr-defined]
        if server_task is not None:
            with suppress(asyncio.CancelledError):
                await server_task
        waiters[0].cancel()
        await dispose_engine()
