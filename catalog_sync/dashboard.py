"""FastAPI admin surface for catalog sync and exclusions."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.config import settings
from catalog_sync.db.models import CatalogCategory, CatalogExclusion, CatalogItem, CatalogSyncLog
from catalog_sync.repo import catalog as catalog_repo, exclusions as exclusions_repo, sync_log as sync_log_repo
from catalog_sync.scheduler.service import CatalogSyncScheduler
from catalog_sync.services.catalog_sync import CatalogSyncService

log = logging.getLogger("audit")


def _require_token(request: Request) -> None:
    token = request.app.state.token
    if not token:
        raise HTTPException(status_code=503, detail="Dashboard token is not configured")

    provided: str | None = None
    header = request.headers.get("Authorization")
    if header:
        scheme, _, value = header.partition(" ")
        provided = value.strip() if scheme.lower() == "bearer" else header.strip()
    if provided is None:
        provided = request.query_params.get("token")

    if provided != token:
        raise HTTPException(status_code=401, detail="Unauthorized")


class ExclusionCreate(BaseModel):
    exclusion_type: str = Field(..., min_length=1, description="product or category")
    item_id: str = Field(..., min_length=1, description="Supplier id of the excluded node")
    reason: Optional[str] = None
    created_by: Optional[str] = Field(default=None, max_length=64)


def _exclusion_payload(row: CatalogExclusion) -> dict[str, Any]:
    return {
        "id": row.id,
        "exclusion_type": row.exclusion_type,
        "item_id": row.item_id,
        "reason": row.reason,
        "created_by": row.created_by,
        "is_active": row.is_active,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def _sync_log_payload(row: CatalogSyncLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "shop_code": row.shop_code,
        "sync_type": row.sync_type,
        "status": row.status,
        "products_synced": row.products_synced,
        "products_added": row.products_added,
        "products_updated": row.products_updated,
        "products_deactivated": row.products_deactivated,
        "error_message": row.error_message,
        "duration_ms": row.duration_ms,
        "started_at": row.started_at.isoformat() if row.started_at else None,
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
    }


def _category_payload(row: CatalogCategory) -> dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "parent_id": row.parent_id,
        "level": row.level,
        "full_path": row.full_path,
        "quanty": row.quanty,
        "sort_order": row.sort_order,
        "is_active": row.is_active,
    }


def _item_payload(row: CatalogItem) -> dict[str, Any]:
    return {
        "id": row.id,
        "category_id": row.category_id,
        "name": row.name,
        "quanty": row.quanty,
        "retail_price": row.retail_price,
        "characteristics": row.characteristics,
        "modifications": row.modifications,
        "is_active": row.is_active,
        "last_updated": row.last_updated.isoformat() if row.last_updated else None,
    }


def create_app(
    service: CatalogSyncService,
    *,
    scheduler: CatalogSyncScheduler | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    token: str | None = None,
) -> FastAPI:
    if session_factory is None:
        from catalog_sync.db.session import async_session_factory as session_factory

    app = FastAPI(title="Catalog Sync Admin")
    app.state.service = service
    app.state.scheduler = scheduler
    app.state.session_factory = session_factory
    app.state.token = settings.DASHBOARD_TOKEN if token is None else token

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/admin/catalog/shops/{shop_code}/sync", status_code=202, dependencies=[Depends(_require_token)])
    async def sync_shop(
        shop_code: str,
        background: BackgroundTasks,
        response: Response,
        wait: bool = Query(default=False),
    ) -> dict[str, Any]:
        log.info("manual sync requested shop=%s wait=%s", shop_code, wait)
        if wait:
            result = await service.sync_shop(shop_code, "manual")
            response.status_code = 200
            return {"success": result.success, "data": result.to_dict()}
        background.add_task(service.sync_shop, shop_code, "manual")
        return {"success": True, "message": f"Sync started for shop {shop_code}", "shop_code": shop_code}

    @app.post("/admin/catalog/sync-all", status_code=202, dependencies=[Depends(_require_token)])
    async def sync_all(background: BackgroundTasks) -> dict[str, Any]:
        log.info("manual sync requested for all shops")
        background.add_task(service.sync_all_shops, "manual")
        return {"success": True, "message": "Sync started for all shops"}

    @app.get("/admin/catalog/sync-status", dependencies=[Depends(_require_token)])
    async def sync_status(
        shop_code: Optional[str] = None,
        limit: int = Query(default=10, ge=1, le=100),
    ) -> dict[str, Any]:
        async with session_factory() as session:
            rows = await sync_log_repo.recent(session, shop_code=shop_code, limit=limit)
        return {"success": True, "data": [_sync_log_payload(row) for row in rows]}

    @app.get("/admin/catalog/shops/{shop_code}/catalog", dependencies=[Depends(_require_token)])
    async def shop_catalog(shop_code: str, active_only: bool = Query(default=True)) -> dict[str, Any]:
        async with session_factory() as session:
            categories = await catalog_repo.list_categories(session, shop_code, active_only=active_only)
            items = await catalog_repo.list_items(session, shop_code, active_only=active_only)
        return {
            "success": True,
            "data": {
                "shop_code": shop_code,
                "categories": [_category_payload(row) for row in categories],
                "items": [_item_payload(row) for row in items],
            },
        }

    @app.get("/admin/catalog/exclusions", dependencies=[Depends(_require_token)])
    async def list_exclusions() -> dict[str, Any]:
        async with session_factory() as session:
            rows = await exclusions_repo.list_active(session)
        return {"success": True, "data": [_exclusion_payload(row) for row in rows]}

    @app.post("/admin/catalog/exclusions", status_code=201, dependencies=[Depends(_require_token)])
    async def create_exclusion(body: ExclusionCreate) -> dict[str, Any]:
        if body.exclusion_type not in exclusions_repo.EXCLUSION_TYPES:
            raise HTTPException(status_code=400, detail="exclusion_type must be 'product' or 'category'")
        try:
            async with session_factory() as session:
                async with session.begin():
                    row = await exclusions_repo.create(
                        session,
                        body.exclusion_type,
                        body.item_id,
                        reason=body.reason,
                        created_by=body.created_by,
                    )
                    payload = _exclusion_payload(row)
        except IntegrityError:
            raise HTTPException(status_code=409, detail="Exclusion already exists") from None
        service.exclusions.invalidate()
        log.info("exclusion added %s:%s by %s", body.exclusion_type, body.item_id, body.created_by or "-")
        return {"success": True, "data": payload}

    @app.delete("/admin/catalog/exclusions/{exclusion_id}", dependencies=[Depends(_require_token)])
    async def delete_exclusion(exclusion_id: int) -> dict[str, Any]:
        async with session_factory() as session:
            async with session.begin():
                row = await exclusions_repo.deactivate(session, exclusion_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Exclusion not found")
        service.exclusions.invalidate()
        log.info("exclusion %s removed", exclusion_id)
        return {"success": True, "message": "Exclusion removed"}

    @app.get("/admin/catalog/scheduler", dependencies=[Depends(_require_token)])
    async def scheduler_status() -> dict[str, Any]:
        if scheduler is None:
            return {"running": False, "paused": False, "interval_minutes": None, "next_run_at": None}
        return scheduler.status()

    return app
