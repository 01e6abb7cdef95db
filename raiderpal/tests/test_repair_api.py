from __future__ import annotations

import json

import pytest


@pytest.fixture()
def repairables(seed, set_version):
    set_version(1)
    seed(
        "rp_items",
        {"id": "anvil", "name": "Anvil", "item_type": "Hand Cannon", "rarity": "Rare"},
        {"id": "ferro", "name": "Ferro", "item_type": "Rifle", "rarity": "Common"},
        {"id": "metal_parts", "name": "Metal Parts", "item_type": "Basic Material", "rarity": "Common"},
    )
    seed("rp_crafting_components", {"item_id": "anvil", "component_id": "metal_parts", "quantity": 6})
    seed("rp_recycling_components", {"source_item_id": "anvil", "component_id": "metal_parts", "quantity": 4})
    seed(
        "rp_repair_profiles",
        {"item_id": "anvil", "max_durability": 100, "step_durability": 50},
        {"item_id": "ferro", "max_durability": 80, "step_durability": 20},
    )
    seed(
        "rp_repair_recipes",
        {"item_id": "anvil", "component_id": "metal_parts", "quantity_per_cycle": 2},
        {"item_id": "anvil", "component_id": " ", "quantity_per_cycle": 1},
    )
    seed(
        "rp_repairable_items",
        {
            "id": "anvil",
            "cheap_threshold": 50,
            "cheap_repair_cost": json.dumps([{"component_item_id": "metal_parts", "quantity": 2}]),
            "expensive_repair_cost": json.dumps([{"component_item_id": "metal_parts", "quantity": 5}]),
        },
        {"id": "ferro", "cheap_threshold": None},
    )


def test_repair_economy_routes_share_payload(client, repairables):
    r1 = client.get("/repair-economy")
    r2 = client.get("/adjustments_gpt/repair-economy")
    r3 = client.get("/api/repair-economy")
    assert r1.status_code == r2.status_code == r3.status_code == 200
    assert r1.json() == r2.json() == r3.json()

    anvil = r1.json()[0]
    assert anvil["id"] == "anvil"
    assert anvil["max_durability"] == 100
    assert anvil["craft_components"] == [
        {"component_item_id": "metal_parts", "quantity": 6.0, "name": None, "rarity": None, "item_type": None, "icon": None}
    ]
    assert anvil["net_upgrade_cost"] == []
    assert r1.headers["cache-control"] == "public, max-age=300"


def test_repair_economy_empty(client):
    r = client.get("/repair-economy")
    assert r.status_code == 200
    assert r.json() == []


def test_recommendation(client, repairables):
    r = client.get("/api/repair-economy/anvil/recommendation", params={"durability": 20})
    assert r.status_code == 200
    body = r.json()
    assert body["recommended_action"] == "REPLACE"
    assert body["repair_cost"] == {"metal_parts": 5.0}
    assert body["true_craft_cost"] == {"metal_parts": 2.0}

    # durability defaults to full
    r = client.get("/api/repair-economy/anvil/recommendation")
    assert r.json()["recommended_action"] == "REPAIR"
    assert r.json()["current_durability"] == 100

    r = client.get("/api/repair-economy/ferro/recommendation")
    assert r.json()["recommended_action"] == "UNKNOWN"

    r = client.get("/api/repair-economy/ghost/recommendation")
    assert r.status_code == 404


def test_repair_summary(client, repairables):
    r = client.get("/api/repair/anvil/summary", params={"durability": 30})
    assert r.status_code == 200
    assert r.json() == {"item_id": "anvil", "cycles": 2, "missing": 70.0, "totals": {"metal_parts": 4.0}}

    r = client.get("/api/repair/ghost/summary")
    assert r.status_code == 404
    assert "error" in r.json()


def test_repair_sanity(client, repairables):
    r = client.get("/api/maintenance/repair-sanity")
    assert r.status_code == 200
    body = r.json()
    assert body["bad_component_ids"] == 1
    assert body["bad_qty"] == 0
    assert body["profiles_missing_recipes"] == [
        {"item_id": "ferro", "name": "Ferro", "item_type": "Rifle", "rarity": "Common"}
    ]
