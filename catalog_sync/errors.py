"""Error types raised by the catalog ingestion pipeline."""

from __future__ import annotations

from typing import Any


class CatalogSyncError(RuntimeError):
    """Base class for recoverable per-shop sync failures."""


class SupplierError(CatalogSyncError):
    """Transport-level failure talking to the supplier endpoint."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SupplierResponseError(SupplierError):
    """The supplier answered, but with an error envelope or an empty body."""


class CatalogShapeError(CatalogSyncError):
    """Payload matches neither the canonical nor the raw ``items`` layout."""


__all__ = [
    "CatalogShapeError",
    "CatalogSyncError",
    "SupplierError",
    "SupplierResponseError",
]
