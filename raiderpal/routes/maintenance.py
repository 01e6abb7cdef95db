from __future__ import annotations

from fastapi import APIRouter, Depends

from ..errors import RaiderPalError
from ..providers.rowstore import RowStore
from ..repository import meta_repo, repairs_repo
from .deps import error_response, get_store, json_ok

router = APIRouter()


@router.get("/api/maintenance/repair-sanity")
def api_repair_sanity(store: RowStore = Depends(get_store)):
    """Recipe rows with blank components or non-positive quantities, and profiles with no recipe."""
    try:
        counters = repairs_repo.repair_sanity_check(store)
        missing = repairs_repo.list_profiles_missing_recipes(store)
        return json_ok({**counters, "profiles_missing_recipes": missing})
    except RaiderPalError as e:
        return error_response(e)


@router.get("/api/maintenance/version-sanity")
def api_version_sanity(store: RowStore = Depends(get_store)):
    """Checks the metadata relation holds exactly one well-formed version row; reads bypass the cache."""
    try:
        rows = meta_repo.list_version_rows(store)
    except RaiderPalError as e:
        return error_response(e)
    try:
        meta_repo.check_version_invariants(rows)
    except ValueError as ve:
        return json_ok({"ok": False, "rows": len(rows), "problem": str(ve)})
    return json_ok({"ok": True, "rows": len(rows)})
