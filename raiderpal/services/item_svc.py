# raiderpal/services/item_svc.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..providers.rowstore import RowStore
from ..repository import items_repo
from .cache_svc import ReadThroughCache, TTLClass


def _ttl(settings: Settings, family: str) -> TTLClass:
    return TTLClass(settings.ttl_class_for(family))


def list_items(store: RowStore, cache: ReadThroughCache, settings: Settings,
               search: Optional[str] = None, rarity: Optional[str] = None,
               item_type: Optional[str] = None, limit: Optional[int] = None,
               offset: int = 0) -> List[Dict[str, Any]]:
    key = "items:list"
    if any(v is not None for v in (search, rarity, item_type, limit)) or offset:
        # JSON keeps filter values with ":" or "=" in them from colliding
        key += ":" + json.dumps(
            {"search": search, "rarity": rarity, "item_type": item_type, "limit": limit, "offset": offset or 0},
            sort_keys=True,
        )
    return cache.get_or_load(
        key,
        lambda: items_repo.list_items(store, search, rarity, item_type, limit, offset),
        _ttl(settings, "items"),
    )


def get_item(store: RowStore, cache: ReadThroughCache, settings: Settings, item_id: str) -> Optional[Dict[str, Any]]:
    return cache.get_or_load(
        f"item:{item_id}:detail",
        lambda: items_repo.get_item_by_id(store, item_id),
        _ttl(settings, "item_detail"),
    )


_DETAIL_LOADERS = {
    "crafting": items_repo.get_crafting_for_item,
    "recycling": items_repo.get_recycling_for_item,
    "used-in": items_repo.get_used_in_for_item,
    "sources": items_repo.get_best_sources_for_item,
}


def get_item_relation(store: RowStore, cache: ReadThroughCache, settings: Settings,
                      item_id: str, kind: str) -> List[Dict[str, Any]]:
    loader = _DETAIL_LOADERS[kind]
    return cache.get_or_load(
        f"item:{item_id}:{kind}",
        lambda: loader(store, item_id),
        _ttl(settings, "item_detail"),
    )


def recycling_id_sets(store: RowStore, cache: ReadThroughCache, settings: Settings) -> Dict[str, List[str]]:
    return cache.get_or_load(
        "recycling:id-sets",
        lambda: items_repo.get_recycling_id_sets(store),
        _ttl(settings, "recycling"),
    )


def recycling_item_types(store: RowStore, cache: ReadThroughCache, settings: Settings) -> List[str]:
    return cache.get_or_load(
        "recycling:item-types",
        lambda: items_repo.get_recycling_item_types(store),
        _ttl(settings, "recycling"),
    )
