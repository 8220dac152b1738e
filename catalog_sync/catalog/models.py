"""Canonical catalog tree produced by the classifier.

Numeric fields keep the supplier's raw representation (often locale strings
such as ``"1 200,00"``); they are parsed right before storage.

Nodes read with ``from_dict`` remember the mapping they came from, so an
untouched canonical payload serializes back to exactly the same mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _same(original: Any, current: Any) -> bool:
    if original == current:
        return True
    if isinstance(original, (list, Mapping)) or isinstance(current, (list, Mapping)):
        return False
    return _opt_str(original) == _opt_str(current)


def _render(source: Mapping[str, Any] | None, current: dict[str, Any]) -> dict[str, Any]:
    """Serialize ``current`` in the shape of ``source`` when there is one.

    Keys keep the source order; unmodelled keys are copied as they were and
    modelled values that did not change keep their original spelling.
    """

    if source is None:
        return current
    payload: dict[str, Any] = {}
    for key, original in source.items():
        if key not in current:
            payload[key] = original
            continue
        value = current[key]
        if _same(original, value):
            payload[key] = original
        elif value is not None:
            payload[key] = value
        # None здесь значит, что поле убрали после чтения
    for key, value in current.items():
        if key not in payload and key not in source and value not in (None, []):
            payload[key] = value
    return payload


_SOURCE = dict(default=None, compare=False, repr=False)


@dataclass(slots=True)
class Modification:
    id: str | None
    name: str
    quantity: Any = None
    retail_price: Any = None
    purchase_price: Any = None
    source: Mapping[str, Any] | None = field(**_SOURCE)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "quanty": self.quantity,
            "retail_price": self.retail_price,
            "purchase_price": self.purchase_price,
        }
        if self.source is None and self.purchase_price is None:
            del payload["purchase_price"]
        return _render(self.source, payload)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Modification":
        return cls(
            id=_opt_str(data.get("id")),
            name=str(data.get("name") or ""),
            quantity=data.get("quanty"),
            retail_price=data.get("retail_price"),
            purchase_price=data.get("purchase_price"),
            source=data,
        )


@dataclass(slots=True)
class CanonicalProduct:
    id: str | None
    name: str
    quantity: Any = None
    retail_price: Any = None
    purchase_price: Any = None
    modifications: list[Modification] = field(default_factory=list)
    source: Mapping[str, Any] | None = field(**_SOURCE)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "quanty": self.quantity,
            "retail_price": self.retail_price,
            "purchase_price": self.purchase_price,
            "modifications": [mod.to_dict() for mod in self.modifications],
        }
        if self.source is None:
            if self.purchase_price is None:
                del payload["purchase_price"]
            if not self.modifications:
                del payload["modifications"]
        return _render(self.source, payload)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CanonicalProduct":
        raw_mods = data.get("modifications") or []
        return cls(
            id=_opt_str(data.get("id")),
            name=str(data.get("name") or ""),
            quantity=data.get("quanty"),
            retail_price=data.get("retail_price"),
            purchase_price=data.get("purchase_price"),
            modifications=[Modification.from_dict(mod) for mod in raw_mods if isinstance(mod, Mapping)],
            source=data,
        )


@dataclass(slots=True)
class CanonicalCategory:
    id: str | None
    name: str
    quantity: Any = None
    products: list[CanonicalProduct] = field(default_factory=list)
    subcategories: list["CanonicalCategory"] = field(default_factory=list)
    source: Mapping[str, Any] | None = field(**_SOURCE)

    @property
    def is_leaf(self) -> bool:
        return not self.subcategories

    def iter_products(self):
        """Yield every product in this subtree, depth first."""

        yield from self.products
        for sub in self.subcategories:
            yield from sub.iter_products()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name, "quanty": self.quantity}
        if self.is_leaf:
            payload["products"] = [product.to_dict() for product in self.products]
        else:
            payload["subcategories"] = [sub.to_dict() for sub in self.subcategories]
        return _render(self.source, payload)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CanonicalCategory":
        subcategories = [
            cls.from_dict(sub) for sub in data.get("subcategories") or [] if isinstance(sub, Mapping)
        ]
        products: list[CanonicalProduct] = []
        if not subcategories:
            products = [
                CanonicalProduct.from_dict(item)
                for item in data.get("products") or []
                if isinstance(item, Mapping)
            ]
        return cls(
            id=_opt_str(data.get("id")),
            name=str(data.get("name") or ""),
            quantity=data.get("quanty"),
            products=products,
            subcategories=subcategories,
            source=data,
        )


@dataclass(slots=True)
class CatalogTree:
    shopname: str = ""
    categories: list[CanonicalCategory] = field(default_factory=list)
    source: Mapping[str, Any] | None = field(**_SOURCE)

    def iter_products(self):
        for category in self.categories:
            yield from category.iter_products()

    def to_dict(self) -> dict[str, Any]:
        return _render(
            self.source,
            {
                "shopname": self.shopname,
                "categories": [category.to_dict() for category in self.categories],
            },
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogTree":
        return cls(
            shopname=str(data.get("shopname") or ""),
            categories=[
                CanonicalCategory.from_dict(cat)
                for cat in data.get("categories") or []
                if isinstance(cat, Mapping)
            ],
            source=data,
        )


__all__ = ["CanonicalCategory", "CanonicalProduct", "CatalogTree", "Modification"]
