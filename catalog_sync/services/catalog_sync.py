"""Per-shop catalog sync: fetch → classify → filter → reconcile."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.catalog.classifier import classify
from catalog_sync.catalog.exclusions import ExclusionCache, Exclusions, apply_exclusions
from catalog_sync.config import Settings, settings as default_settings
from catalog_sync.errors import CatalogShapeError, SupplierError
from catalog_sync.repo import exclusions as exclusions_repo, shops as shops_repo, sync_log as sync_log_repo
from catalog_sync.services.reconciler import ReconcileResult, reconcile
from catalog_sync.supplier.transport import SupplierTransport

log = logging.getLogger("catalog.sync")

SHOP_NOT_FOUND = "Shop not found or inactive"


class SyncStage(str, enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    FILTERING = "filtering"
    RECONCILING = "reconciling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class SyncResult:
    success: bool
    shop_code: str
    shop_name: str
    products_added: int = 0
    products_updated: int = 0
    products_deactivated: int = 0
    total_products: int = 0
    error: Optional[str] = None
    duration_ms: int = 0
    stage: SyncStage = SyncStage.PENDING

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["stage"] = self.stage.value
        return payload


def summarize(results: Iterable[SyncResult]) -> dict[str, int]:
    items = list(results)
    successful = sum(1 for result in items if result.success)
    return {"total": len(items), "successful": successful, "failed": len(items) - successful}


class CatalogSyncService:
    """Drives catalog syncs for individual shops or the whole chain."""

    def __init__(
        self,
        transport: SupplierTransport,
        exclusion_cache: ExclusionCache,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        workers: int = 4,
        shop_timeout: float | None = None,
    ) -> None:
        self._transport = transport
        self._exclusions = exclusion_cache
        self._session_factory = session_factory
        self._workers = max(1, workers)
        self._shop_timeout = shop_timeout

    @property
    def exclusions(self) -> ExclusionCache:
        return self._exclusions

    async def _start_log(self, shop_code: str, sync_type: str, started_at: datetime) -> int | None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    entry = await sync_log_repo.start(session, shop_code, sync_type, started_at)
                return entry.id
        except Exception:
            log.exception("sync log start failed shop=%s", shop_code)
            return None

    async def _finish_log(self, log_id: int | None, result: SyncResult) -> None:
        if log_id is None:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await sync_log_repo.finish(
                        session,
                        log_id,
                        status="success" if result.success else "failed",
                        duration_ms=result.duration_ms,
                        products_added=result.products_added,
                        products_updated=result.products_updated,
                        products_deactivated=result.products_deactivated,
                        error_message=result.error,
                    )
        except Exception:
            log.exception("sync log finish failed shop=%s", result.shop_code)

    async def sync_shop(self, shop_code: str, sync_type: str = "manual") -> SyncResult:
        """Sync one shop end to end; never raises."""

        started = time.perf_counter()
        started_at = datetime.now(timezone.utc)

        def _elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        log.info("catalog sync start shop=%s type=%s", shop_code, sync_type)
        try:
            async with self._session_factory() as session:
                shop = await shops_repo.get_active(session, shop_code)
        except Exception as exc:
            log.exception("shop lookup failed shop=%s", shop_code)
            return SyncResult(
                success=False,
                shop_code=shop_code,
                shop_name="Unknown",
                error=str(exc) or exc.__class__.__name__,
                duration_ms=_elapsed(),
                stage=SyncStage.FAILED,
            )

        if shop is None:
            log.warning("shop %s not found or inactive", shop_code)
            return SyncResult(
                success=False,
                shop_code=shop_code,
                shop_name="Unknown",
                error=SHOP_NOT_FOUND,
                duration_ms=_elapsed(),
                stage=SyncStage.FAILED,
            )

        result = SyncResult(success=False, shop_code=shop_code, shop_name=shop.shop_name)
        result.stage = SyncStage.FETCHING
        log_id = await self._start_log(shop_code, sync_type, started_at)

        try:
            outcome = await asyncio.wait_for(
                self._run_pipeline(shop_code, shop.shop_name, started_at, result),
                self._shop_timeout,
            )
        except asyncio.TimeoutError:
            log.error(
                "catalog sync timed out shop=%s stage=%s after %ss",
                shop_code,
                result.stage.value,
                self._shop_timeout,
            )
            result.error = f"Sync timed out after {self._shop_timeout}s"
        except SupplierError as exc:
            log.warning("supplier error shop=%s: %s", shop_code, exc)
            result.error = str(exc)
        except CatalogShapeError as exc:
            log.warning("could not classify payload shop=%s: %s", shop_code, exc)
            result.error = f"Could not transform API data: {exc}"
        except Exception as exc:
            log.exception("catalog sync failed shop=%s stage=%s", shop_code, result.stage.value)
            result.error = str(exc) or exc.__class__.__name__
        else:
            result.success = True
            result.products_added = outcome.added
            result.products_updated = outcome.updated
            result.products_deactivated = outcome.deactivated
            result.total_products = outcome.added + outcome.updated

        result.stage = SyncStage.SUCCEEDED if result.success else SyncStage.FAILED
        result.duration_ms = _elapsed()
        await self._finish_log(log_id, result)
        if result.success:
            log.info(
                "catalog sync done shop=%s in %dms: +%d ~%d -%d",
                shop_code,
                result.duration_ms,
                result.products_added,
                result.products_updated,
                result.products_deactivated,
            )
        return result

    async def _run_pipeline(
        self,
        shop_code: str,
        shop_name: str,
        started_at: datetime,
        result: SyncResult,
    ) -> ReconcileResult:
        """Fetch, classify, filter and persist one shop; bounded by the shop deadline."""

        payload = await self._transport.fetch_shop_data(shop_code)

        result.stage = SyncStage.CLASSIFYING
        tree = classify(payload)
        tree.shopname = shop_name

        result.stage = SyncStage.FILTERING
        exclusions = await self._load_exclusions()
        tree = apply_exclusions(tree, exclusions)

        # Транзакция открывается только после сетевого запроса
        result.stage = SyncStage.RECONCILING
        async with self._session_factory() as session:
            async with session.begin():
                return await reconcile(session, shop_code, shop_name, tree, started_at=started_at)

    async def _load_exclusions(self) -> Exclusions:
        return await self._exclusions.get()

    async def sync_all_shops(self, sync_type: str = "scheduled") -> list[SyncResult]:
        """Sync every active shop through a bounded worker pool.

        One result per shop is returned; only a failure to enumerate the
        shops propagates.
        """

        async with self._session_factory() as session:
            shops = await shops_repo.list_active(session)

        if not shops:
            log.warning("no active shops found")
            return []

        log.info("catalog sync for %d shops, workers=%d", len(shops), self._workers)
        semaphore = asyncio.Semaphore(self._workers)

        async def _run(shop_code: str, shop_name: str) -> SyncResult:
            async with semaphore:
                try:
                    return await self.sync_shop(shop_code, sync_type)
                except Exception as exc:
                    log.exception("unexpected sync failure shop=%s", shop_code)
                    return SyncResult(
                        success=False,
                        shop_code=shop_code,
                        shop_name=shop_name,
                        error=str(exc) or exc.__class__.__name__,
                        stage=SyncStage.FAILED,
                    )

        results = list(await asyncio.gather(*(_run(shop.shop_code, shop.shop_name) for shop in shops)))
        summary = summarize(results)
        log.info("catalog sync completed: %d successful, %d failed", summary["successful"], summary["failed"])
        return results


def build_sync_service(
    config: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> CatalogSyncService:
    config = config or default_settings
    if session_factory is None:
        from catalog_sync.db.session import async_session_factory as session_factory

    async def _load_exclusions() -> Exclusions:
        async with session_factory() as session:
            return await exclusions_repo.load_active(session)

    cache = ExclusionCache(_load_exclusions, ttl_seconds=config.CATALOG_EXCLUSIONS_TTL_SECONDS)
    return CatalogSyncService(
        SupplierTransport(config),
        cache,
        session_factory,
        workers=config.CATALOG_SYNC_WORKERS,
        shop_timeout=config.CATALOG_SYNC_SHOP_TIMEOUT_SECONDS,
    )


__all__ = [
    "CatalogSyncService",
    "SHOP_NOT_FOUND",
    "SyncResult",
    "SyncStage",
    "build_sync_service",
    "summarize",
]
