from __future__ import annotations

import hmac
from typing import List

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from ..config import Settings
from ..errors import NotFoundError, RaiderPalError
from ..logs import LogContext
from ..services.cache_svc import ReadThroughCache, TTLClass, VersionGate
from .deps import error_response, get_cache, get_gate, get_settings, json_error, json_ok

router = APIRouter()


class RevalidateBody(BaseModel):
    keys: List[str] = Field(default_factory=list)
    prefixes: List[str] = Field(default_factory=list)
    all: bool = False


@router.get("/api/version")
def api_version(gate: VersionGate = Depends(get_gate)):
    try:
        record = gate.current()
        if record is None:
            raise NotFoundError("Data version not found")
        return json_ok(record.to_payload(), TTLClass.VERSION.value)
    except RaiderPalError as e:
        return error_response(e)


@router.post("/api/revalidate")
def api_revalidate(
    body: RevalidateBody | None = None,
    x_revalidate_token: str | None = Header(None),
    cache: ReadThroughCache = Depends(get_cache),
    gate: VersionGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    """
    Drop cache entries after an out-of-band data change.

    - header ``x-revalidate-token`` must match the configured token
    - body ``{"keys": [...], "prefixes": [...], "all": false}``; at least one is required
    The version memo is reset too, so the next read sees the latest version row.
    """
    expected = settings.revalidate_token
    if not expected:
        return json_error("Revalidation is not configured", 500)
    if not x_revalidate_token or not hmac.compare_digest(x_revalidate_token, expected):
        return json_error("Invalid token", 401)

    body = body or RevalidateBody()
    if not (body.keys or body.prefixes or body.all):
        return json_error("Nothing to revalidate: pass keys, prefixes or all", 400)

    log = LogContext("CACHE_REVALIDATE", db_path=settings.db_path)
    log.set_payload(body.model_dump())
    scope = "all" if body.all else "+".join(s for s, v in (("keys", body.keys), ("prefixes", body.prefixes)) if v)
    log.set_entity("cache", scope)
    try:
        if body.all:
            cleared = cache.clear()
        else:
            cleared = sum(cache.invalidate(k) for k in body.keys)
            cleared += sum(cache.invalidate_prefix(p) for p in body.prefixes)
        gate.reset()
        out = {"revalidated": True, "cleared": cleared}
        log.set_after(out)
        log.write("OK")
        return json_ok(out)
    except Exception as e:
        log.write("ERROR", str(e))
        return json_error(str(e), 500)


@router.get("/api/cache/stats")
def api_cache_stats(cache: ReadThroughCache = Depends(get_cache)):
    return json_ok(cache.stats())
