from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..config import Settings
from ..constants import QUERY
from ..errors import NotFoundError, RaiderPalError
from ..providers.rowstore import RowStore
from ..services import item_svc
from ..services.cache_svc import ReadThroughCache
from .deps import error_response, get_cache, get_settings, get_store, json_ok, validate_item_id

router = APIRouter()


@router.get("/api/items")
def api_items(
    search: str | None = Query(None, max_length=100),
    rarity: str | None = Query(None),
    item_type: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=QUERY["MAX_ITEMS_PER_PAGE"]),
    offset: int = Query(0, ge=0),
    store: RowStore = Depends(get_store),
    cache: ReadThroughCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Item list ordered by name: ``[{id, name, icon, rarity, item_type}]``."""
    try:
        rows = item_svc.list_items(store, cache, settings, search, rarity, item_type, limit, offset)
        return json_ok(rows, settings.ttl_class_for("items"))
    except RaiderPalError as e:
        return error_response(e)


@router.get("/api/items/{item_id}")
def api_item_detail(
    item_id: str,
    store: RowStore = Depends(get_store),
    cache: ReadThroughCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    try:
        item_id = validate_item_id(item_id)
        item = item_svc.get_item(store, cache, settings, item_id)
        if item is None:
            raise NotFoundError("Item not found")
        return json_ok(item, settings.ttl_class_for("item_detail"))
    except RaiderPalError as e:
        return error_response(e)


def _relation(kind: str, item_id: str, store: RowStore, cache: ReadThroughCache,
              settings: Settings, require_item: bool):
    try:
        item_id = validate_item_id(item_id)
        if require_item and item_svc.get_item(store, cache, settings, item_id) is None:
            raise NotFoundError("Item not found")
        rows = item_svc.get_item_relation(store, cache, settings, item_id, kind)
        return json_ok(rows, settings.ttl_class_for("item_detail"))
    except RaiderPalError as e:
        return error_response(e)


@router.get("/api/items/{item_id}/crafting")
def api_item_crafting(item_id: str, store: RowStore = Depends(get_store),
                      cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("crafting", item_id, store, cache, settings, require_item=True)


@router.get("/api/items/{item_id}/recycling")
def api_item_recycling(item_id: str, store: RowStore = Depends(get_store),
                       cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("recycling", item_id, store, cache, settings, require_item=False)


@router.get("/api/items/{item_id}/used-in")
def api_item_used_in(item_id: str, store: RowStore = Depends(get_store),
                     cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("used-in", item_id, store, cache, settings, require_item=False)


@router.get("/api/items/{item_id}/sources")
def api_item_sources(item_id: str, store: RowStore = Depends(get_store),
                     cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("sources", item_id, store, cache, settings, require_item=True)


# Page-level routes kept for older clients: no existence check, [] when nothing recorded.

@router.get("/items/{item_id}/sources")
def item_sources(item_id: str, store: RowStore = Depends(get_store),
                 cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("sources", item_id, store, cache, settings, require_item=False)


@router.get("/items/{item_id}/crafting")
def item_crafting(item_id: str, store: RowStore = Depends(get_store),
                  cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("crafting", item_id, store, cache, settings, require_item=False)


@router.get("/items/{item_id}/recycling")
def item_recycling(item_id: str, store: RowStore = Depends(get_store),
                   cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    return _relation("recycling", item_id, store, cache, settings, require_item=False)


@router.get("/api/recycling/id-sets")
def api_recycling_id_sets(store: RowStore = Depends(get_store),
                          cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    try:
        return json_ok(item_svc.recycling_id_sets(store, cache, settings), settings.ttl_class_for("recycling"))
    except RaiderPalError as e:
        return error_response(e)


@router.get("/api/recycling/item-types")
def api_recycling_item_types(store: RowStore = Depends(get_store),
                             cache: ReadThroughCache = Depends(get_cache), settings: Settings = Depends(get_settings)):
    try:
        return json_ok(item_svc.recycling_item_types(store, cache, settings), settings.ttl_class_for("recycling"))
    except RaiderPalError as e:
        return error_response(e)
