from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from ..providers.rowstore import RowStore
from ..services.utils import coerce_number, parse_cost_list
from .contracts import VIEW_CONTRACTS
from .query import query_view, query_view_maybe_single

COST_COLUMNS = (
    "net_upgrade_cost",
    "cheap_repair_cost",
    "expensive_repair_cost",
    "craft_components",
    "recycle_outputs",
)


def _economy_row(r: Dict[str, Any]) -> Dict[str, Any]:
    out = {
        "id": r["id"],
        "name": r.get("name") or r["id"],
        "item_type": r.get("item_type"),
        "rarity": r.get("rarity"),
        "icon": r.get("icon"),
        "max_durability": coerce_number(r.get("max_durability")),
        "cheap_threshold": coerce_number(r.get("cheap_threshold")),
        "required_item_id": r.get("required_item_id"),
    }
    for col in COST_COLUMNS:
        out[col] = parse_cost_list(r.get(col))
    return out


def get_repair_economy(store: RowStore) -> List[Dict[str, Any]]:
    rows = query_view(store, VIEW_CONTRACTS["repair_economy"], lambda q: q.order("name", ascending=True))
    return [_economy_row(r) for r in rows]


def get_repair_profile(store: RowStore, item_id: str) -> Optional[Dict[str, Any]]:
    return query_view_maybe_single(store, VIEW_CONTRACTS["repair_profiles"], lambda q: q.eq("item_id", item_id))


def get_repair_recipe_rows(store: RowStore, item_id: str) -> List[Dict[str, Any]]:
    return query_view(
        store, VIEW_CONTRACTS["repair_recipes"],
        lambda q: q.eq("item_id", item_id).order("component_id", ascending=True),
    )


def list_profiles_missing_recipes(store: RowStore) -> List[Dict[str, Any]]:
    profiles = query_view(store, VIEW_CONTRACTS["repair_profiles"], lambda q: q.order("item_id"))
    recipes = query_view(store, VIEW_CONTRACTS["repair_recipes"])
    have = {r["item_id"] for r in recipes}
    missing = [p["item_id"] for p in profiles if p["item_id"] not in have]
    if not missing:
        return []
    items = query_view(store, VIEW_CONTRACTS["items"], lambda q: q.in_("id", missing).order("id"))
    by_id = {i["id"]: i for i in items}
    return [
        {
            "item_id": mid,
            "name": (by_id.get(mid) or {}).get("name") or mid,
            "item_type": (by_id.get(mid) or {}).get("item_type"),
            "rarity": (by_id.get(mid) or {}).get("rarity"),
        }
        for mid in missing
    ]


def repair_sanity_check(store: RowStore) -> Dict[str, int]:
    rows = query_view(store, VIEW_CONTRACTS["repair_recipes"])
    bad_component_ids = bad_qty = 0
    for r in rows:
        if not (r["component_id"] or "").strip():
            bad_component_ids += 1
        qty = r["quantity_per_cycle"]
        if qty is None or not math.isfinite(qty) or qty <= 0:
            bad_qty += 1
    return {"bad_component_ids": bad_component_ids, "bad_qty": bad_qty}
