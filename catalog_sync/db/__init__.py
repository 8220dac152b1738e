"""Database package."""

from .models import (
    Base,
    CatalogCategory,
    CatalogExclusion,
    CatalogItem,
    CatalogSyncLog,
    ShopLocation,
)

__all__ = [
    "Base",
    "CatalogCategory",
    "CatalogExclusion",
    "CatalogItem",
    "CatalogSyncLog",
    "ShopLocation",
]
