# raiderpal/services/repair_svc.py
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings
from ..errors import NotFoundError
from ..providers.rowstore import RowStore
from ..repository import repairs_repo
from .cache_svc import ReadThroughCache, TTLClass
from .utils import coerce_number

DEFAULT_STEP_DURABILITY = 50


def get_repair_economy(store: RowStore, cache: ReadThroughCache, settings: Settings) -> List[Dict[str, Any]]:
    return cache.get_or_load(
        "repair_economy:all",
        lambda: repairs_repo.get_repair_economy(store),
        TTLClass(settings.ttl_class_for("repair_economy")),
    )


def find_economy_row(store: RowStore, cache: ReadThroughCache, settings: Settings, item_id: str) -> Dict[str, Any]:
    for row in get_repair_economy(store, cache, settings):
        if row["id"] == item_id:
            return row
    raise NotFoundError(f"No repair data for item '{item_id}'")


# ---------------- repair math ----------------

def compute_repair_cycles(max_durability, step_durability, current_durability) -> Dict[str, float]:
    """
    Cycles needed to bring an item back to full durability.

    Inputs are clamped: max >= 0, step >= 1 (defaults to 50 when missing or
    zero), current within [0, max].

    >>> compute_repair_cycles(100, 50, 30)
    {'missing': 70.0, 'cycles': 2}
    """
    safe_max = max(0.0, coerce_number(max_durability) or 0.0)
    safe_step = max(1.0, coerce_number(step_durability) or DEFAULT_STEP_DURABILITY)
    safe_current = max(0.0, min(coerce_number(current_durability) or 0.0, safe_max))

    missing = max(0.0, safe_max - safe_current)
    cycles = 0 if missing == 0 else math.ceil(missing / safe_step)
    return {"missing": missing, "cycles": cycles}


def compute_repair_cost(recipe_rows: Iterable[Dict[str, Any]], cycles: int) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for row in recipe_rows:
        cid = (row.get("component_id") or "").strip()
        per_cycle = coerce_number(row.get("quantity_per_cycle"), 0.0)
        qty = per_cycle * max(0, cycles)
        if not cid or qty <= 0:
            continue
        totals[cid] = totals.get(cid, 0.0) + qty
    return totals


def compute_repair_summary(profile: Dict[str, Any], recipe: List[Dict[str, Any]], current_durability) -> Dict[str, Any]:
    res = compute_repair_cycles(profile.get("max_durability"), profile.get("step_durability"), current_durability)
    totals = compute_repair_cost(recipe, res["cycles"])
    return {"cycles": res["cycles"], "missing": res["missing"], "totals": totals}


def repair_summary_for_item(store: RowStore, item_id: str, current_durability) -> Dict[str, Any]:
    profile = repairs_repo.get_repair_profile(store, item_id)
    if profile is None:
        raise NotFoundError(f"No repair profile for item '{item_id}'")
    recipe = repairs_repo.get_repair_recipe_rows(store, item_id)
    out = compute_repair_summary(profile, recipe, current_durability)
    out["item_id"] = item_id
    return out


def _to_map(costs: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for c in costs:
        cid = c["component_item_id"]
        out[cid] = out.get(cid, 0.0) + c["quantity"]
    return out


def _subtract(a: Dict[str, float], b: Dict[str, float]) -> Dict[str, float]:
    out = dict(a)
    for k, v in b.items():
        out[k] = out.get(k, 0.0) - v
        if out[k] == 0:
            del out[k]
    return out


def recommend_action(item: Dict[str, Any], current_durability: float) -> Dict[str, Any]:
    """REPAIR in the cheap band at or above ``cheap_threshold``, otherwise REPLACE.

    True craft cost is craft components minus what recycling the old item
    gives back; negative quantities mean a net gain.
    """
    if item.get("max_durability") is None or item.get("cheap_threshold") is None:
        return {"recommended_action": "UNKNOWN"}

    cheap = _to_map(item.get("cheap_repair_cost") or [])
    expensive = _to_map(item.get("expensive_repair_cost") or [])
    craft = _to_map(item.get("craft_components") or [])
    recycle = _to_map(item.get("recycle_outputs") or [])

    use_cheap = current_durability >= item["cheap_threshold"]
    return {
        "recommended_action": "REPAIR" if use_cheap else "REPLACE",
        "repair_band": "cheap" if use_cheap else "expensive",
        "repair_cost": cheap if use_cheap else expensive,
        "true_craft_cost": _subtract(craft, recycle),
    }


def recommendation_for_item(store: RowStore, cache: ReadThroughCache, settings: Settings,
                            item_id: str, current_durability: Optional[float]) -> Dict[str, Any]:
    row = find_economy_row(store, cache, settings, item_id)
    durability = current_durability if current_durability is not None else (row.get("max_durability") or 0)
    out = recommend_action(row, durability)
    out["item_id"] = item_id
    out["current_durability"] = durability
    return out
