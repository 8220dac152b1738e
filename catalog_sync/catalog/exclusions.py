"""Operator exclusions: a TTL cache over ``catalog_exclusions`` and the tree filter."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from catalog_sync.catalog.models import (
    CanonicalCategory,
    CanonicalProduct,
    CatalogTree,
    Modification,
)
from catalog_sync.catalog.sanitize import clean_name

log = logging.getLogger("catalog.exclusions")


@dataclass(frozen=True, slots=True)
class Exclusions:
    product_ids: frozenset[str] = field(default_factory=frozenset)
    category_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_rows(cls, rows) -> "Exclusions":
        """Partition ``(exclusion_type, item_id)`` rows by type."""

        products: set[str] = set()
        categories: set[str] = set()
        for exclusion_type, item_id in rows:
            if exclusion_type == "product":
                products.add(str(item_id))
            elif exclusion_type == "category":
                categories.add(str(item_id))
        return cls(frozenset(products), frozenset(categories))

    def __bool__(self) -> bool:
        return bool(self.product_ids or self.category_ids)


ExclusionLoader = Callable[[], Awaitable[Exclusions]]


class ExclusionCache:
    """Time-boxed in-memory copy of the active exclusions.

    Readers share one snapshot until it is older than ``ttl_seconds``.
    ``invalidate()`` is called by the admin write path.
    """

    def __init__(
        self,
        loader: ExclusionLoader,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._value = Exclusions()
        self._loaded_at = 0.0
        self._fresh = False
        self._generation = 0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._fresh and (self._clock() - self._loaded_at) < self._ttl

    async def get(self) -> Exclusions:
        if self._is_fresh():
            return self._value
        async with self._lock:
            if self._is_fresh():
                return self._value
            log.info("loading catalog exclusions from DB")
            generation = self._generation
            try:
                value = await self._loader()
            except Exception:
                # Синк важнее строгости: без исключений, но не блокируем каталог
                log.exception("exclusions reload failed, continuing without exclusions")
                return Exclusions()
            if generation != self._generation:
                log.info("exclusions changed during reload, snapshot not cached")
                return value
            self._value = value
            self._loaded_at = self._clock()
            self._fresh = True
            log.info(
                "loaded exclusions: %d products, %d categories",
                len(value.product_ids),
                len(value.category_ids),
            )
            return value

    def invalidate(self) -> None:
        self._generation += 1
        self._fresh = False
        self._loaded_at = 0.0


def _strip_modification(mod: Modification) -> Modification:
    return Modification(
        id=mod.id,
        name=clean_name(mod.name),
        quantity=mod.quantity,
        retail_price=mod.retail_price,
    )


def _strip_product(product: CanonicalProduct) -> CanonicalProduct:
    return CanonicalProduct(
        id=product.id,
        name=clean_name(product.name),
        quantity=product.quantity,
        retail_price=product.retail_price,
        modifications=[_strip_modification(mod) for mod in product.modifications],
    )


def _filter_category(category: CanonicalCategory, exclusions: Exclusions) -> CanonicalCategory | None:
    if category.id and category.id in exclusions.category_ids:
        log.debug("excluded category %s (%s)", category.name, category.id)
        return None

    products: list[CanonicalProduct] = []
    for product in category.products:
        if product.id and product.id in exclusions.product_ids:
            log.debug("excluded product %s (%s)", product.name, product.id)
            continue
        products.append(_strip_product(product))

    subcategories = [
        filtered
        for filtered in (_filter_category(sub, exclusions) for sub in category.subcategories)
        if filtered is not None
    ]
    return CanonicalCategory(
        id=category.id,
        name=category.name,
        quantity=category.quantity,
        products=products,
        subcategories=subcategories,
    )


def apply_exclusions(tree: CatalogTree, exclusions: Exclusions) -> CatalogTree:
    """Drop excluded categories/products and strip cost prices.

    Returns a new tree. Categories left empty by filtering are kept.
    """

    categories = [
        filtered
        for filtered in (_filter_category(cat, exclusions) for cat in tree.categories)
        if filtered is not None
    ]
    return CatalogTree(shopname=tree.shopname, categories=categories)


__all__ = ["ExclusionCache", "Exclusions", "apply_exclusions"]
