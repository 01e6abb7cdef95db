from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ..constants import QUERY, SEARCH_PATTERN
from ..errors import ValidationError
from ..providers.rowstore import Query, RowStore
from .contracts import VIEW_CONTRACTS
from .query import query_view, query_view_maybe_single

_SEARCH_RE = re.compile(SEARCH_PATTERN)


def list_items(store: RowStore, search: Optional[str] = None, rarity: Optional[str] = None,
               item_type: Optional[str] = None, limit: Optional[int] = None,
               offset: int = 0) -> List[Dict[str, Any]]:
    """Item list ordered by name. ``search`` matches name, type or loot area."""
    if search:
        search = search.strip()
        # only word chars, spaces, hyphens, apostrophes and periods reach the filter DSL
        if not _SEARCH_RE.match(search):
            raise ValidationError("Search query contains invalid characters")

    def build(q: Query) -> Query:
        q = q.order("name", ascending=True)
        if search:
            q = q.ilike_any(("name", "item_type", "loot_area"), search)
        if rarity:
            q = q.eq("rarity", rarity)
        if item_type:
            q = q.eq("item_type", item_type)
        if limit is not None:
            n = max(1, min(int(limit), QUERY["MAX_ITEMS_PER_PAGE"]))
            q = q.range(offset or 0, (offset or 0) + n - 1)
        return q

    return query_view(store, VIEW_CONTRACTS["items"], build)


def get_item_by_id(store: RowStore, item_id: str) -> Optional[Dict[str, Any]]:
    row = query_view_maybe_single(store, VIEW_CONTRACTS["item_detail"], lambda q: q.eq("id", item_id))
    if row is None:
        return None
    row["name"] = row.get("name") or row["id"]
    return row


def get_crafting_for_item(store: RowStore, item_id: str) -> List[Dict[str, Any]]:
    return query_view(
        store, VIEW_CONTRACTS["crafting"],
        lambda q: q.eq("item_id", item_id).order("component_name", ascending=True),
    )


def get_recycling_for_item(store: RowStore, item_id: str) -> List[Dict[str, Any]]:
    return query_view(
        store, VIEW_CONTRACTS["recycling"],
        lambda q: q.eq("source_item_id", item_id).order("component_name", ascending=True),
    )


def get_used_in_for_item(store: RowStore, item_id: str) -> List[Dict[str, Any]]:
    rows = query_view(
        store, VIEW_CONTRACTS["used_in"],
        lambda q: q.eq("component_id", item_id).order("result_item_name", ascending=True),
    )
    return [
        {
            "product_id": r["result_item_id"],
            "product_name": r["result_item_name"],
            "product_icon": r["result_item_icon"],
            "product_rarity": r["result_item_rarity"],
            "product_type": r["result_item_type"],
            "product_value": r["result_item_value"],
            "quantity": r["quantity"],
        }
        for r in rows
    ]


def get_best_sources_for_item(store: RowStore, component_id: str) -> List[Dict[str, Any]]:
    """Items that recycle into ``component_id``, best yield first. Empty list when none."""
    rows = query_view(
        store, VIEW_CONTRACTS["sources"],
        lambda q: q.eq("component_id", component_id).order("quantity", ascending=False),
    )
    out = [
        {
            "source_item_id": r["source_item_id"],
            "source_name": r["source_name"] or r["source_item_id"],
            "source_icon": r["source_icon"],
            "source_rarity": r["source_rarity"],
            "source_type": r["source_type"],
            "quantity": r["quantity"],
        }
        for r in rows
    ]
    out.sort(key=lambda s: s["quantity"], reverse=True)
    return out


def get_recycling_id_sets(store: RowStore) -> Dict[str, List[str]]:
    """Ids that can be obtained by recycling (needable) and ids that can be recycled (haveable)."""
    rows = query_view(store, VIEW_CONTRACTS["recycling"])
    needable: Dict[str, None] = {}
    haveable: Dict[str, None] = {}
    for r in rows:
        if r["component_id"]:
            needable[r["component_id"]] = None
        if r["source_item_id"]:
            haveable[r["source_item_id"]] = None
    return {"needableIds": list(needable), "haveableIds": list(haveable)}


def get_recycling_item_types(store: RowStore) -> List[str]:
    rows = query_view(store, VIEW_CONTRACTS["recycling"], lambda q: q.not_null("component_type"))
    types = {(r["component_type"] or "").strip() for r in rows}
    return sorted((t for t in types if t), key=str.lower)
