from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from catalog_sync.catalog.classifier import classify
from catalog_sync.dashboard import create_app
from catalog_sync.db.models import Base
from catalog_sync.repo import sync_log as sync_log_repo
from catalog_sync.services.catalog_sync import SyncResult, SyncStage
from catalog_sync.services.reconciler import reconcile

pytest.importorskip("aiosqlite")

TOKEN = "admin-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def _service() -> MagicMock:
    service = MagicMock()
    service.sync_shop = AsyncMock()
    service.sync_all_shops = AsyncMock(return_value=[])
    service.exclusions = MagicMock()
    return service


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://admin.test")


@pytest.mark.asyncio
async def test_health_needs_no_token() -> None:
    engine, factory = await _session_factory()
    try:
        app = create_app(_service(), session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_admin_routes_require_token() -> None:
    engine, factory = await _session_factory()
    try:
        app = create_app(_service(), session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            missing = await client.get("/admin/catalog/exclusions")
            wrong = await client.get("/admin/catalog/exclusions", headers={"Authorization": "Bearer nope"})
            via_query = await client.get("/admin/catalog/exclusions", params={"token": TOKEN})
        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert via_query.status_code == 200

        unconfigured = create_app(_service(), session_factory=factory, token="")
        async with _client(unconfigured) as client:
            response = await client.get("/admin/catalog/exclusions", headers=AUTH)
        assert response.status_code == 503
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_manual_sync_runs_in_background() -> None:
    engine, factory = await _session_factory()
    try:
        service = _service()
        app = create_app(service, session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            one = await client.post("/admin/catalog/shops/s1/sync", headers=AUTH)
            every = await client.post("/admin/catalog/sync-all", headers=AUTH)

        assert one.status_code == 202
        assert one.json()["shop_code"] == "s1"
        assert every.status_code == 202
        service.sync_shop.assert_awaited_once_with("s1", "manual")
        service.sync_all_shops.assert_awaited_once_with("manual")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_exclusion_lifecycle_invalidates_cache() -> None:
    engine, factory = await _session_factory()
    try:
        service = _service()
        app = create_app(service, session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            created = await client.post(
                "/admin/catalog/exclusions",
                json={"exclusion_type": "product", "item_id": "p1", "reason": "recall", "created_by": "ops"},
                headers=AUTH,
            )
            duplicate = await client.post(
                "/admin/catalog/exclusions",
                json={"exclusion_type": "product", "item_id": "p1"},
                headers=AUTH,
            )
            invalid = await client.post(
                "/admin/catalog/exclusions",
                json={"exclusion_type": "shop", "item_id": "x"},
                headers=AUTH,
            )
            listed = await client.get("/admin/catalog/exclusions", headers=AUTH)

            exclusion_id = created.json()["data"]["id"]
            deleted = await client.delete(f"/admin/catalog/exclusions/{exclusion_id}", headers=AUTH)
            missing = await client.delete("/admin/catalog/exclusions/9999", headers=AUTH)
            after = await client.get("/admin/catalog/exclusions", headers=AUTH)
            recreated = await client.post(
                "/admin/catalog/exclusions",
                json={"exclusion_type": "product", "item_id": "p1"},
                headers=AUTH,
            )

        assert created.status_code == 201
        assert created.json()["data"]["created_by"] == "ops"
        assert duplicate.status_code == 409
        assert invalid.status_code == 400
        assert [row["item_id"] for row in listed.json()["data"]] == ["p1"]
        assert deleted.status_code == 200
        assert missing.status_code == 404
        assert after.json()["data"] == []
        # Мягко удалённое исключение можно вернуть
        assert recreated.status_code == 201
        assert recreated.json()["data"]["id"] == exclusion_id
        assert service.exclusions.invalidate.call_count == 3
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_sync_status_lists_recent_logs() -> None:
    engine, factory = await _session_factory()
    try:
        async with factory() as session:
            async with session.begin():
                for minute, shop in enumerate(["s1", "s2", "s1"]):
                    entry = await sync_log_repo.start(
                        session, shop, "scheduled", datetime(2026, 1, 1, 10, minute, tzinfo=timezone.utc)
                    )
                    await sync_log_repo.finish(session, entry.id, status="success", duration_ms=10, products_added=1)

        app = create_app(_service(), session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            everything = await client.get("/admin/catalog/sync-status", headers=AUTH)
            only_s1 = await client.get("/admin/catalog/sync-status", params={"shop_code": "s1", "limit": 1}, headers=AUTH)

        rows = everything.json()["data"]
        assert [row["shop_code"] for row in rows] == ["s1", "s2", "s1"]
        assert rows[0]["products_synced"] == 1
        s1_rows = only_s1.json()["data"]
        assert len(s1_rows) == 1
        assert s1_rows[0]["started_at"].startswith("2026-01-01T10:02")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_scheduler_status_endpoint() -> None:
    engine, factory = await _session_factory()
    try:
        scheduler = MagicMock()
        scheduler.status.return_value = {"running": True, "paused": False, "interval_minutes": 30, "next_run_at": None}
        app = create_app(_service(), scheduler=scheduler, session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            response = await client.get("/admin/catalog/scheduler", headers=AUTH)
        assert response.json()["interval_minutes"] == 30

        bare = create_app(_service(), session_factory=factory, token=TOKEN)
        async with _client(bare) as client:
            response = await client.get("/admin/catalog/scheduler", headers=AUTH)
        assert response.json()["running"] is False
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_manual_sync_can_wait_for_result() -> None:
    engine, factory = await _session_factory()
    try:
        service = _service()
        service.sync_shop = AsyncMock(
            return_value=SyncResult(
                success=False,
                shop_code="s9",
                shop_name="Unknown",
                error="Shop not found or inactive",
                stage=SyncStage.FAILED,
            )
        )
        app = create_app(service, session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            response = await client.post("/admin/catalog/shops/s9/sync", params={"wait": "true"}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"]["error"] == "Shop not found or inactive"
        assert body["data"]["stage"] == "failed"
        service.sync_shop.assert_awaited_once_with("s9", "manual")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_shop_catalog_lists_persisted_rows() -> None:
    engine, factory = await _session_factory()
    try:
        raw = {
            "items": [
                {
                    "id": "c1",
                    "name": "Liquids",
                    "items": [
                        {"id": "p1", "name": "Juice", "retail_price": "1 200,00"},
                        {"id": "p2", "name": "Cola", "retail_price": "90"},
                    ],
                }
            ]
        }
        async with factory() as session:
            async with session.begin():
                await reconcile(session, "s1", "Shop 1", classify(raw), started_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
            raw["items"][0]["items"].pop()
            async with session.begin():
                await reconcile(session, "s1", "Shop 1", classify(raw), started_at=datetime(2026, 1, 2, tzinfo=timezone.utc))

        app = create_app(_service(), session_factory=factory, token=TOKEN)
        async with _client(app) as client:
            active = await client.get("/admin/catalog/shops/s1/catalog", headers=AUTH)
            everything = await client.get("/admin/catalog/shops/s1/catalog", params={"active_only": "false"}, headers=AUTH)

        data = active.json()["data"]
        assert [row["id"] for row in data["categories"]] == ["c1"]
        assert [row["id"] for row in data["items"]] == ["p1"]
        assert data["items"][0]["retail_price"] == 1200.0
        assert {row["id"]: row["is_active"] for row in everything.json()["data"]["items"]} == {"p1": True, "p2": False}
    finally:
        await engine.dispose()
