import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from functools import wraps
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import STATE_PAUSED
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from catalog_sync.config import Settings, settings as default_settings
from catalog_sync.services.catalog_sync import CatalogSyncService, summarize

log = logging.getLogger("scheduler")

SYNC_JOB_ID = "catalog_sync_all"
WARMUP_JOB_ID = "catalog_sync_warmup"


def _wrap_job(
    job: Callable[..., Awaitable[Any]],
    *,
    name: str,
    logger: logging.Logger,
) -> Callable[..., Awaitable[Any]]:
    """Wrap coroutine job to log duration and swallow exceptions."""

    @wraps(job)
    async def _inner(*args: Any, **kwargs: Any) -> Any:
        started = time.perf_counter()
        logger.debug("job started", extra={"job": name})
        try:
            result = await job(*args, **kwargs)
        except Exception:
            logger.exception("job %s failed after %.2fs", name, time.perf_counter() - started)
            return None

        logger.info("job %s finished in %.2fs", name, time.perf_counter() - started)
        return result

    return _inner


class CatalogSyncScheduler:
    """Periodic full-chain catalog sync on top of APScheduler."""

    def __init__(self, service: CatalogSyncService, config: Settings | None = None) -> None:
        self._service = service
        self._config = config or default_settings
        self._scheduler = AsyncIOScheduler(
            timezone=self._config.TIMEZONE,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )

    @property
    def interval_minutes(self) -> int:
        return self._config.CATALOG_SYNC_INTERVAL_MINUTES

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def run_sync(self) -> dict[str, int]:
        results = await self._service.sync_all_shops(sync_type="scheduled")
        return summarize(results)

    def _add_jobs(self) -> None:
        job = _wrap_job(self.run_sync, name=SYNC_JOB_ID, logger=log)
        self._scheduler.add_job(
            job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SYNC_JOB_ID,
            name=SYNC_JOB_ID,
            replace_existing=True,
        )
        delay = self._config.CATALOG_SYNC_STARTUP_DELAY_SECONDS
        if delay >= 0:
            # Первый прогон вскоре после старта, не дожидаясь интервала
            self._scheduler.add_job(
                _wrap_job(self.run_sync, name=WARMUP_JOB_ID, logger=log),
                trigger=DateTrigger(run_date=datetime.now(self._scheduler.timezone) + timedelta(seconds=delay)),
                id=WARMUP_JOB_ID,
                name=WARMUP_JOB_ID,
                replace_existing=True,
            )

    def start(self) -> None:
        if self._scheduler.running:
            log.warning("catalog sync scheduler already running")
            return
        self._add_jobs()
        self._scheduler.start()
        log.info("catalog sync scheduler started, every %d minutes", self.interval_minutes)

    def stop(self) -> None:
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        log.info("catalog sync scheduler stopped")

    def pause(self) -> None:
        if self._scheduler.running:
            self._scheduler.pause()
            log.info("catalog sync scheduler paused")

    def resume(self) -> None:
        if self._scheduler.running:
            self._scheduler.resume()
            log.info("catalog sync scheduler resumed")

    def status(self) -> dict[str, Any]:
        next_run: datetime | None = None
        if self._scheduler.running:
            job = self._scheduler.get_job(SYNC_JOB_ID)
            next_run = getattr(job, "next_run_time", None) if job else None
        return {
            "running": self._scheduler.running,
            "paused": self._scheduler.state == STATE_PAUSED,
            "interval_minutes": self.interval_minutes,
            "next_run_at": next_run.isoformat() if next_run else None,
        }
