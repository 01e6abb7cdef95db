from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from raiderpal.api import create_app
from raiderpal.providers.rowstore import QueryResult, RowStore


class FailingStore(RowStore):
    def execute(self, query):
        return QueryResult.failed("connection refused", code="network_error")


@pytest.fixture()
def items(seed, set_version):
    set_version(1)
    seed(
        "rp_items",
        {"id": "metal_parts", "name": "Metal Parts", "item_type": "Basic Material", "rarity": "Common", "icon": "m.png", "value": 10},
        {"id": "rubber", "name": "Rubber Parts", "item_type": "Basic Material", "rarity": "Common", "icon": "r.png", "value": 8},
        {"id": "anvil", "name": "Anvil", "item_type": "Hand Cannon", "rarity": "Rare", "icon": "a.png", "value": 5000,
         "workbench": "Gunsmith 2", "loot_area": "Industrial"},
        {"id": "toaster", "name": "Broken Toaster", "item_type": "Recyclable", "rarity": "Uncommon", "icon": "t.png", "value": 300},
        {"id": "lonely", "name": "Lonely Item", "item_type": "Trinket", "rarity": "Common"},
    )
    seed(
        "rp_crafting_components",
        {"item_id": "anvil", "component_id": "metal_parts", "quantity": 6},
        {"item_id": "anvil", "component_id": "rubber", "quantity": 2},
    )
    seed(
        "rp_recycling_components",
        {"source_item_id": "toaster", "component_id": "metal_parts", "quantity": 3},
        {"source_item_id": "anvil", "component_id": "metal_parts", "quantity": 4},
        {"source_item_id": "toaster", "component_id": "rubber", "quantity": 1},
    )


def test_items_empty_view_is_200_empty_list(client):
    r = client.get("/api/items")
    assert r.status_code == 200
    assert r.json() == []


def test_items_db_error_is_500_with_error_body(settings):
    client = TestClient(create_app(settings, store=FailingStore()))
    r = client.get("/api/items")
    assert r.status_code == 500
    body = r.json()
    assert set(body) == {"error"}
    assert "connection refused" in body["error"]
    assert "rp_view_items" in body["error"]
    assert r.headers["cache-control"] == "no-store"


def test_items_ordered_by_name(client, items):
    r = client.get("/api/items")
    assert r.status_code == 200
    rows = r.json()
    assert [x["name"] for x in rows] == ["Anvil", "Broken Toaster", "Lonely Item", "Metal Parts", "Rubber Parts"]
    assert set(rows[0]) == {"id", "name", "icon", "rarity", "item_type"}
    assert r.headers["cache-control"] == "public, max-age=3600"


def test_items_filters_and_paging(client, items):
    r = client.get("/api/items", params={"search": "parts"})
    assert [x["id"] for x in r.json()] == ["metal_parts", "rubber"]

    r = client.get("/api/items", params={"rarity": "Rare"})
    assert [x["id"] for x in r.json()] == ["anvil"]

    r = client.get("/api/items", params={"limit": 2, "offset": 1})
    assert [x["id"] for x in r.json()] == ["toaster", "lonely"]


def test_items_bad_search_and_limit(client, items):
    r = client.get("/api/items", params={"search": "a;drop"})
    assert r.status_code == 400
    assert r.json() == {"error": "Search query contains invalid characters"}

    r = client.get("/api/items", params={"limit": 101})
    assert r.status_code == 400
    assert "error" in r.json()


def test_item_detail(client, items):
    r = client.get("/api/items/anvil")
    assert r.status_code == 200
    body = r.json()
    assert body["workbench"] == "Gunsmith 2"
    assert body["value"] == 5000

    r = client.get("/api/items/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Item not found"}


def test_item_id_validation(client):
    r = client.get("/api/items/bad%20id")
    assert r.status_code == 400
    assert r.json() == {"error": "ID contains invalid characters"}

    r = client.get("/api/items/" + "x" * 256)
    assert r.status_code == 400
    assert r.json() == {"error": "ID exceeds maximum length"}


def test_sources_best_yield_first(client, items):
    r = client.get("/items/metal_parts/sources")
    assert r.status_code == 200
    rows = r.json()
    assert [s["source_item_id"] for s in rows] == ["anvil", "toaster"]
    assert rows[0]["quantity"] == 4
    assert rows[0]["source_name"] == "Anvil"


def test_sources_unknown_or_empty_is_200_empty(client, items):
    r = client.get("/items/lonely/sources")
    assert r.status_code == 200
    assert r.json() == []

    r = client.get("/items/unknown-id/sources")
    assert r.status_code == 200
    assert r.json() == []


def test_sources_db_error_is_500(settings):
    client = TestClient(create_app(settings, store=FailingStore()))
    r = client.get("/items/metal_parts/sources")
    assert r.status_code == 500
    assert "error" in r.json()


def test_api_relations(client, items):
    r = client.get("/api/items/anvil/crafting")
    assert r.status_code == 200
    assert [c["component_id"] for c in r.json()] == ["metal_parts", "rubber"]

    r = client.get("/api/items/toaster/recycling")
    assert {c["component_id"] for c in r.json()} == {"metal_parts", "rubber"}

    r = client.get("/api/items/metal_parts/used-in")
    assert r.json() == [
        {
            "product_id": "anvil",
            "product_name": "Anvil",
            "product_icon": "a.png",
            "product_rarity": "Rare",
            "product_type": "Hand Cannon",
            "product_value": 5000,
            "quantity": 6,
        }
    ]

    assert client.get("/api/items/ghost/crafting").status_code == 404
    assert client.get("/api/items/ghost/sources").status_code == 404
    assert client.get("/api/items/ghost/recycling").json() == []


def test_legacy_crafting_and_recycling(client, items):
    assert len(client.get("/items/anvil/crafting").json()) == 2
    assert client.get("/items/ghost/recycling").json() == []


def test_recycling_sets_and_types(client, items):
    r = client.get("/api/recycling/id-sets")
    body = r.json()
    assert set(body["needableIds"]) == {"metal_parts", "rubber"}
    assert set(body["haveableIds"]) == {"toaster", "anvil"}

    r = client.get("/api/recycling/item-types")
    assert r.json() == ["Basic Material"]


def test_item_list_served_from_cache_until_version_bump(client, items, seed, set_version):
    assert len(client.get("/api/items").json()) == 5
    seed("rp_items", {"id": "zeta", "name": "Zeta"})
    # same version: cached list
    assert len(client.get("/api/items").json()) == 5

    set_version(2)
    client.app.state.gate.reset()
    assert len(client.get("/api/items").json()) == 6


def test_item_list_cache_keys_do_not_collide(client, seed, set_version):
    set_version(1)
    seed(
        "rp_items",
        {"id": "a", "name": "A", "rarity": "x:t=y"},
        {"id": "b", "name": "B", "rarity": "x", "item_type": "y:t="},
    )
    r = client.get("/api/items", params={"rarity": "x:t=y"})
    assert [x["id"] for x in r.json()] == ["a"]
    r = client.get("/api/items", params={"rarity": "x", "item_type": "y:t="})
    assert [x["id"] for x in r.json()] == ["b"]


def test_item_list_cache_is_capped(settings, seed, set_version):
    set_version(1)
    client = TestClient(create_app(replace(settings, cache_max_entries=10)))
    for i in range(25):
        assert client.get("/api/items", params={"rarity": f"r{i}"}).status_code == 200
    stats = client.get("/api/cache/stats").json()
    assert stats["entries"] <= 10
    assert stats["cleared"] >= 15
