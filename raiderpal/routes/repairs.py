from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..config import Settings
from ..errors import RaiderPalError
from ..providers.rowstore import RowStore
from ..services import repair_svc
from ..services.cache_svc import ReadThroughCache
from .deps import error_response, get_cache, get_settings, get_store, json_ok, validate_item_id

router = APIRouter()


def _economy(store: RowStore, cache: ReadThroughCache, settings: Settings):
    try:
        rows = repair_svc.get_repair_economy(store, cache, settings)
        return json_ok(rows, settings.ttl_class_for("repair_economy"))
    except RaiderPalError as e:
        return error_response(e)


@router.get("/repair-economy")
def repair_economy(store: RowStore = Depends(get_store), cache: ReadThroughCache = Depends(get_cache),
                   settings: Settings = Depends(get_settings)):
    return _economy(store, cache, settings)


@router.get("/adjustments_gpt/repair-economy")
def repair_economy_adjustments(store: RowStore = Depends(get_store), cache: ReadThroughCache = Depends(get_cache),
                               settings: Settings = Depends(get_settings)):
    return _economy(store, cache, settings)


@router.get("/api/repair-economy")
def api_repair_economy(store: RowStore = Depends(get_store), cache: ReadThroughCache = Depends(get_cache),
                       settings: Settings = Depends(get_settings)):
    return _economy(store, cache, settings)


@router.get("/api/repair-economy/{item_id}/recommendation")
def api_repair_recommendation(
    item_id: str,
    durability: float | None = Query(None, ge=0),
    store: RowStore = Depends(get_store),
    cache: ReadThroughCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Repair-or-replace advice at ``durability`` (defaults to full durability)."""
    try:
        item_id = validate_item_id(item_id)
        out = repair_svc.recommendation_for_item(store, cache, settings, item_id, durability)
        return json_ok(out, settings.ttl_class_for("repair_economy"))
    except RaiderPalError as e:
        return error_response(e)


@router.get("/api/repair/{item_id}/summary")
def api_repair_summary(
    item_id: str,
    durability: float = Query(0, ge=0),
    store: RowStore = Depends(get_store),
):
    try:
        item_id = validate_item_id(item_id)
        return json_ok(repair_svc.repair_summary_for_item(store, item_id, durability))
    except RaiderPalError as e:
        return error_response(e)
