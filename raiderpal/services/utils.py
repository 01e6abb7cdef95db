from __future__ import annotations

# raiderpal/services/utils.py
import json
import math
from typing import Any, Dict, List, Optional


def coerce_number(x, default=None) -> Optional[float]:
    if x is None or isinstance(x, bool):
        return default
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def parse_json_array(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _normalize_component_cost(entry: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(entry, dict):
        return None
    source = entry.get("component") if isinstance(entry.get("component"), dict) else entry
    component_id = (
        source.get("component_item_id")
        or source.get("id")
        or entry.get("component_item_id")
        or entry.get("id")
    )
    qty = coerce_number(entry.get("quantity", source.get("quantity")))
    if not component_id or qty is None:
        return None
    return {
        "component_item_id": str(component_id),
        "quantity": qty,
        "name": source.get("name", entry.get("name")),
        "rarity": source.get("rarity", entry.get("rarity")),
        "item_type": source.get("item_type", entry.get("item_type")),
        "icon": source.get("icon", entry.get("icon")),
    }


def parse_cost_list(value: Any) -> List[Dict[str, Any]]:
    """Normalise a cost column (JSON array or JSON text) into ComponentCost dicts; bad entries dropped."""
    out = []
    for entry in parse_json_array(value):
        c = _normalize_component_cost(entry)
        if c is not None:
            out.append(c)
    return out
