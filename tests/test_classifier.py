import pytest

from catalog_sync.catalog.classifier import classify, has_nested_categories, is_priced_group
from catalog_sync.catalog.models import CatalogTree
from catalog_sync.errors import CatalogShapeError


def _liquids_payload() -> dict:
    return {
        "items": [
            {
                "id": "c1",
                "name": "Liquids",
                "items": [
                    {
                        "id": "p1",
                        "name": "Juice (акциз)",
                        "items": [
                            {"id": "m1", "name": "Vkus Mango", "retail_price": "1 200,00", "purchase_price": "700"},
                            {"id": "m2", "name": "Vkus Apple", "retail_price": "1 200,00"},
                        ],
                    }
                ],
            }
        ]
    }


def test_all_priced_children_make_one_product_with_modifications() -> None:
    tree = classify(_liquids_payload())

    assert [category.name for category in tree.categories] == ["Liquids"]
    category = tree.categories[0]
    assert category.subcategories == []
    assert len(category.products) == 1

    product = category.products[0]
    assert product.id == "p1"
    assert product.name == "Juice"
    assert [mod.id for mod in product.modifications] == ["m1", "m2"]
    # Цена и закупка берутся с первой модификации
    assert product.retail_price == "1 200,00"
    assert product.purchase_price == "700"


def test_null_price_key_still_counts_as_priced() -> None:
    children = [{"id": "a", "retail_price": None}, {"id": "b", "retail_price": "10"}]
    assert is_priced_group(children)
    assert not is_priced_group([])
    assert not is_priced_group([{"id": "a", "retail_price": "1"}, {"id": "b"}])


def test_mixed_children_become_subcategories() -> None:
    payload = {
        "items": [
            {
                "id": "root",
                "name": "Devices",
                "items": [
                    {"id": "sub", "name": "Pods", "items": [{"id": "x", "name": "Xros", "retail_price": "2500"}, {"id": "y", "name": "Case"}]},
                    {"id": "loose", "name": "Coil", "retail_price": "300"},
                ],
            }
        ]
    }

    tree = classify(payload)
    root = tree.categories[0]

    assert root.products == []
    assert [sub.id for sub in root.subcategories] == ["sub", "loose"]
    pods = root.subcategories[0]
    assert [product.id for product in pods.products] == ["x", "y"]
    assert pods.products[0].retail_price == "2500"
    assert pods.products[1].retail_price is None


def test_partially_priced_node_is_a_category() -> None:
    children = [
        {
            "id": "group",
            "name": "Mixed",
            "items": [{"id": "a", "name": "A", "retail_price": "1"}, {"id": "b", "name": "B"}],
        }
    ]
    assert has_nested_categories(children)

    tree = classify({"items": [{"id": "top", "name": "Top", "items": children}]})
    group = tree.categories[0].subcategories[0]
    assert group.id == "group"
    assert [product.id for product in group.products] == ["a", "b"]
    assert all(not product.modifications for product in group.products)


def test_category_without_items_is_empty() -> None:
    tree = classify({"items": [{"id": "c", "name": "Empty"}]})
    category = tree.categories[0]
    assert category.products == []
    assert category.subcategories == []
    assert category.is_leaf


def test_classification_is_idempotent() -> None:
    first = classify(_liquids_payload())
    second = classify(first.to_dict())

    assert second == first
    assert second.to_dict() == first.to_dict()


def test_canonical_payload_passes_through() -> None:
    canonical = {
        "shopname": "Shop 1",
        "categories": [
            {
                "id": "c1",
                "name": "Liquids",
                "products": [{"id": "p1", "name": "Juice", "retail_price": "10", "quanty": "2"}],
            }
        ],
    }

    tree = classify(canonical)
    assert isinstance(tree, CatalogTree)
    assert tree.shopname == "Shop 1"
    assert tree.categories[0].products[0].quantity == "2"


def test_non_object_children_are_skipped() -> None:
    tree = classify({"items": [{"id": "c", "name": "C", "items": ["junk", {"id": "p", "name": "P"}]}]})
    assert [product.id for product in tree.categories[0].products] == ["p"]


@pytest.mark.parametrize("payload", [None, {}, [], "", [{"id": "x"}], {"foo": "bar"}, {"items": "nope"}])
def test_unknown_shapes_raise(payload) -> None:
    with pytest.raises(CatalogShapeError):
        classify(payload)


def test_canonical_payload_serializes_back_unchanged() -> None:
    canonical = {
        "shopname": "Shop 1",
        "shop_id": "s1",
        "categories": [
            {
                "id": "c1",
                "name": "Liquids",
                "products": [
                    {"id": "p1", "name": "Juice", "retail_price": 10},
                    {
                        "id": 7,
                        "name": "Pod",
                        "quanty": "1,5",
                        "barcode": "4600000000001",
                        "modifications": [{"id": "m1", "name": "Red", "retail_price": "1 200,00"}],
                    },
                ],
            },
            {"id": "c2", "name": "Devices", "subcategories": [{"id": "c3", "name": "Pods", "products": []}]},
        ],
    }

    tree = classify(canonical)

    assert tree.to_dict() == canonical
    assert list(tree.to_dict()) == ["shopname", "shop_id", "categories"]
    assert tree.categories[0].products[1].id == "7"
