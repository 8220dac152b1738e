"""Persist a canonical catalog tree for one shop.

Every category and item reached by the walk is upserted with the sync's
start timestamp; one bulk pass afterwards deactivates whatever the walk did
not touch. The caller wraps the call in a single transaction.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.catalog.models import CanonicalCategory, CanonicalProduct, CatalogTree, Modification
from catalog_sync.catalog.sanitize import clean_name, parse_locale_number
from catalog_sync.repo import catalog as catalog_repo

log = logging.getLogger("catalog.reconcile")

PATH_SEPARATOR = " > "

_FLAVOR_KEYWORDS = ("вкус", "ароматизатор", "аромат")
_COLOR_KEYWORDS = ("цвет", "окраска")
_FLAVOR_PREFIX_RE = re.compile(r"^(вкус|ароматизатор|аромат)[:\s]*", re.IGNORECASE)
_COLOR_PREFIX_RE = re.compile(r"^(цвет|окраска)[:\s]*", re.IGNORECASE)
_ID_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")


@dataclass(slots=True)
class ReconcileResult:
    categories: int = 0
    items: int = 0
    added: int = 0
    updated: int = 0
    deactivated: int = 0
    categories_deactivated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def synthesize_category_id(name: str, touched_at: datetime) -> str:
    """Id for supplier grouping nodes that arrive without one."""

    return f"cat_{_ID_UNSAFE_RE.sub('_', name)}_{int(touched_at.timestamp() * 1000)}"


def _append_unique(bucket: list[str], value: str) -> None:
    if value and value not in bucket:
        bucket.append(value)


def variant_tags(product_name: str, modifications: Sequence[Modification]) -> dict[str, list[str]]:
    """Derive legacy ``вкус``/``цвет``/``вариант`` buckets from modification names."""

    flavors: list[str] = []
    colors: list[str] = []
    others: list[str] = []
    for mod in modifications:
        name = mod.name.strip()
        if not name or name == product_name:
            continue
        lowered = name.lower()
        if any(keyword in lowered for keyword in _FLAVOR_KEYWORDS):
            _append_unique(flavors, _FLAVOR_PREFIX_RE.sub("", name).strip())
        elif any(keyword in lowered for keyword in _COLOR_KEYWORDS):
            _append_unique(colors, _COLOR_PREFIX_RE.sub("", name).strip())
        else:
            _append_unique(others, name)

    tags: dict[str, list[str]] = {}
    if flavors:
        tags["вкус"] = flavors
    if colors:
        tags["цвет"] = colors
    if others and not flavors and not colors:
        tags["вариант"] = others
    return tags


def _valid_modifications(product: CanonicalProduct) -> list[Modification]:
    valid: list[Modification] = []
    for mod in product.modifications:
        if not isinstance(mod, Modification):
            raise TypeError(f"modification of {product.id} is {type(mod).__name__}, not Modification")
        if mod.id and mod.name and mod.name.strip():
            valid.append(mod)
    return valid


def build_item_payload(product: CanonicalProduct, full_path: str) -> dict[str, Any]:
    """Row values for one product; raises on malformed modification data."""

    name = clean_name(product.name)
    modifications = _valid_modifications(product)
    mods_payload = [
        {
            "id": mod.id,
            "name": clean_name(mod.name),
            "quanty": parse_locale_number(mod.quantity),
            "retail_price": parse_locale_number(mod.retail_price),
        }
        for mod in modifications
    ] or None

    characteristics: dict[str, Any] = {"full_path": full_path}
    characteristics.update(variant_tags(name, modifications))

    # Ловим несериализуемые значения до записи, чтобы не ронять транзакцию
    json.dumps(characteristics, ensure_ascii=False)
    json.dumps(mods_payload, ensure_ascii=False)

    return {
        "name": name,
        "quanty": parse_locale_number(product.quantity),
        "retail_price": parse_locale_number(product.retail_price),
        "characteristics": characteristics,
        "modifications": mods_payload,
    }


async def _walk(
    session: AsyncSession,
    shop_code: str,
    category: CanonicalCategory,
    *,
    parent_id: str | None,
    path: tuple[str, ...],
    sort_order: int,
    touched_at: datetime,
    seen_items: set[str],
    result: ReconcileResult,
) -> None:
    name = category.name.strip()
    if not name:
        log.debug("skip nameless category id=%s under %s", category.id, PATH_SEPARATOR.join(path))
        return

    category_id = category.id or synthesize_category_id(name, touched_at)
    full_path = PATH_SEPARATOR.join((*path, name))
    await catalog_repo.upsert_category(
        session,
        category_id=category_id,
        shop_code=shop_code,
        name=name,
        parent_id=parent_id,
        level=len(path),
        full_path=full_path,
        quanty=parse_locale_number(category.quantity),
        sort_order=sort_order,
        touched_at=touched_at,
    )
    result.categories += 1

    for product in category.products:
        if not product.id or not product.name:
            result.skipped += 1
            continue
        try:
            payload = build_item_payload(product, full_path)
        except (TypeError, ValueError):
            log.exception("skip malformed product %s in %s", product.id, full_path)
            result.skipped += 1
            continue
        await catalog_repo.upsert_item(
            session,
            item_id=product.id,
            shop_code=shop_code,
            category_id=category_id,
            touched_at=touched_at,
            **payload,
        )
        if product.id not in seen_items:
            seen_items.add(product.id)
            result.items += 1

    for index, sub in enumerate(category.subcategories):
        await _walk(
            session,
            shop_code,
            sub,
            parent_id=category_id,
            path=(*path, name),
            sort_order=index,
            touched_at=touched_at,
            seen_items=seen_items,
            result=result,
        )


async def reconcile(
    session: AsyncSession,
    shop_code: str,
    shop_name: str,
    tree: CatalogTree,
    *,
    started_at: datetime,
) -> ReconcileResult:
    """Upsert ``tree`` for ``shop_code`` and deactivate rows older than ``started_at``."""

    result = ReconcileResult()
    known_ids = await catalog_repo.existing_item_ids(session, shop_code)
    seen_items: set[str] = set()

    for index, category in enumerate(tree.categories):
        await _walk(
            session,
            shop_code,
            category,
            parent_id=None,
            path=(),
            sort_order=index,
            touched_at=started_at,
            seen_items=seen_items,
            result=result,
        )

    result.added = len(seen_items - known_ids)
    result.updated = len(seen_items & known_ids)
    result.categories_deactivated, result.deactivated = await catalog_repo.deactivate_stale(
        session, shop_code, started_at
    )
    log.info("reconciled shop=%s (%s): %s", shop_code, shop_name, result.to_dict())
    return result


__all__ = [
    "ReconcileResult",
    "build_item_payload",
    "reconcile",
    "synthesize_category_id",
    "variant_tags",
]
