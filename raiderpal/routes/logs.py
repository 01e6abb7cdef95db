from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..config import Settings
from ..logs import search_logs
from .deps import get_settings

router = APIRouter()


@router.get("/api/logs/search")
def api_logs_search(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    action: str | None = None,
    query: str | None = None,
    ts_from: str | None = None,
    ts_to: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    settings: Settings = Depends(get_settings),
):
    total, items = search_logs(query, action, ts_from, ts_to, page, size, db_path=settings.db_path,
                               entity_type=entity_type, entity_id=entity_id)
    return {"total": total, "items": items}
