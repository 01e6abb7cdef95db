from __future__ import annotations

import re
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ..config import Settings
from ..constants import HTTP_MAX_AGE, ITEM_ID_MAX_LEN, ITEM_ID_PATTERN
from ..errors import RaiderPalError, ValidationError
from ..providers.rowstore import RowStore
from ..services.cache_svc import ReadThroughCache, VersionGate

_ITEM_ID_RE = re.compile(ITEM_ID_PATTERN)


def get_store(request: Request) -> RowStore:
    return request.app.state.store


def get_cache(request: Request) -> ReadThroughCache:
    return request.app.state.cache


def get_gate(request: Request) -> VersionGate:
    return request.app.state.gate


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def validate_item_id(item_id: str) -> str:
    v = (item_id or "").strip()
    if not v:
        raise ValidationError("Missing or invalid id")
    if len(v) > ITEM_ID_MAX_LEN:
        raise ValidationError("ID exceeds maximum length")
    if not _ITEM_ID_RE.match(v):
        raise ValidationError("ID contains invalid characters")
    return v


def cache_headers(ttl_class: Optional[str]) -> Dict[str, str]:
    if not ttl_class:
        return {"Cache-Control": "no-store"}
    max_age = HTTP_MAX_AGE.get(ttl_class, HTTP_MAX_AGE["DEFAULT"])
    return {"Cache-Control": f"public, max-age={max_age}"}


def json_ok(data: Any, ttl_class: Optional[str] = None, status: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status, headers=cache_headers(ttl_class))


def json_error(message: str, status: int = 500) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status, headers={"Cache-Control": "no-store"})


def error_response(e: RaiderPalError) -> JSONResponse:
    return json_error(e.message, e.status)
