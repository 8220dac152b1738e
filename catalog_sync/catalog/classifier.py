"""Classify the supplier's untyped product tree into a canonical catalog.

The supplier sends one nested ``items`` tree per shop. A node with ``items``
may be a category of categories, a category of products, or a product whose
children are priced modifications. The only signal is whether *every* child
carries a ``retail_price`` key; the same predicate is applied at every level.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from catalog_sync.catalog.models import (
    CanonicalCategory,
    CanonicalProduct,
    CatalogTree,
    Modification,
)
from catalog_sync.catalog.sanitize import clean_name
from catalog_sync.errors import CatalogShapeError

log = logging.getLogger("catalog.classify")


def _children(node: Mapping[str, Any]) -> list[Any] | None:
    items = node.get("items")
    if isinstance(items, list):
        return items
    return None


def _node_id(node: Mapping[str, Any]) -> str | None:
    value = node.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _has_price(node: Any) -> bool:
    # Ключ может присутствовать со значением null, цена всё равно считается заданной
    return isinstance(node, Mapping) and "retail_price" in node


def is_priced_group(children: Sequence[Any]) -> bool:
    """True when every child carries ``retail_price``: a product with variants."""

    return bool(children) and all(_has_price(child) for child in children)


def has_nested_categories(children: Sequence[Any]) -> bool:
    """True when some child has its own non-priced ``items``, i.e. is a category."""

    for child in children:
        if not isinstance(child, Mapping):
            continue
        grand = _children(child)
        if grand and not is_priced_group(grand):
            return True
    return False


def map_product(node: Mapping[str, Any]) -> CanonicalProduct:
    retail_price: Any = None
    purchase_price: Any = None
    modifications: list[Modification] = []

    children = _children(node)
    if children:
        first = children[0] if isinstance(children[0], Mapping) else {}
        retail_price = first.get("retail_price")
        purchase_price = first.get("purchase_price")
        if is_priced_group(children):
            modifications = [
                Modification(
                    id=_node_id(child),
                    name=clean_name(child.get("name")),
                    quantity=child.get("quanty"),
                    retail_price=child.get("retail_price"),
                    purchase_price=child.get("purchase_price"),
                )
                for child in children
            ]
    elif "retail_price" in node:
        retail_price = node.get("retail_price")
        purchase_price = node.get("purchase_price")

    return CanonicalProduct(
        id=_node_id(node),
        name=clean_name(node.get("name")),
        quantity=node.get("quanty"),
        retail_price=retail_price,
        purchase_price=purchase_price,
        modifications=modifications,
    )


def map_category(node: Mapping[str, Any]) -> CanonicalCategory:
    category = CanonicalCategory(
        id=_node_id(node),
        name=str(node.get("name") or ""),
        quantity=node.get("quanty"),
    )
    children = _children(node)
    if children is None:
        return category

    mappings = [child for child in children if isinstance(child, Mapping)]
    if len(mappings) != len(children):
        log.warning("category %s: skipped %d non-object children", category.id, len(children) - len(mappings))

    if has_nested_categories(mappings):
        category.subcategories = [map_category(child) for child in mappings]
    else:
        category.products = [map_product(child) for child in mappings]
    return category


def classify(payload: Any) -> CatalogTree:
    """Build a :class:`CatalogTree` from a supplier payload.

    Already-canonical payloads (``{"shopname", "categories": [...]}``) are
    passed through unchanged. Raw payloads must expose a top-level ``items``
    list; anything else raises :class:`CatalogShapeError`.
    """

    if not payload:
        raise CatalogShapeError("Empty data from supplier")
    if not isinstance(payload, Mapping):
        raise CatalogShapeError(f"Unknown data structure: {type(payload).__name__}")

    if isinstance(payload.get("categories"), list):
        log.info("payload already canonical, passing through")
        return CatalogTree.from_dict(payload)

    items = payload.get("items")
    if isinstance(items, list):
        categories = [map_category(node) for node in items if isinstance(node, Mapping)]
        log.info("classified raw tree: %d top-level categories", len(categories))
        return CatalogTree(shopname=str(payload.get("shopname") or ""), categories=categories)

    raise CatalogShapeError("Unknown data structure: neither 'categories' nor 'items' present")


__all__ = [
    "classify",
    "has_nested_categories",
    "is_priced_group",
    "map_category",
    "map_product",
]
