"""
FastAPI app factory aggregating per-domain routers under raiderpal/routes.
Run with `uvicorn raiderpal.api:create_app --factory`.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .errors import RaiderPalError
from .logs import ensure_log_schema
from .providers import create_row_store
from .providers.rowstore import RowStore
from .repository.meta_repo import get_data_version
from .routes.base import APP_NAME, APP_VERSION
from .routes.deps import error_response, json_error
from .services.cache_svc import MemoryCacheStorage, ReadThroughCache, SqliteCacheStorage, VersionGate

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[RowStore] = None,
               clock: Optional[Callable[[], float]] = None) -> FastAPI:
    """
    Build the app with its own row store, version gate and cache on ``app.state``.
    Configuration problems raise ConfigurationError here, before serving anything.
    """
    settings = settings or load_settings()
    clock = clock or time.time
    store = store or create_row_store(settings)

    gate = VersionGate(lambda: get_data_version(store), clock=clock)
    if settings.cache_backend == "sqlite":
        storage = SqliteCacheStorage(settings.db_path)
        storage.ensure_schema()
    else:
        storage = MemoryCacheStorage()
    cache = ReadThroughCache(gate, storage, clock=clock, max_entries=settings.cache_max_entries or None)

    ensure_log_schema(settings.db_path)

    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.settings = settings
    app.state.store = store
    app.state.gate = gate
    app.state.cache = cache

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RaiderPalError)
    async def _raiderpal_error(request: Request, exc: RaiderPalError):
        logger.warning("%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _invalid_params(request: Request, exc: RequestValidationError):
        errs = exc.errors()
        first = errs[0] if errs else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p not in ("query", "path", "body"))
        msg = first.get("msg", "Invalid parameters")
        return json_error(f"{where}: {msg}" if where else msg, 400)

    @app.on_event("shutdown")
    def on_shutdown():
        store.close()

    # Include routers (split by domain)
    from .routes import base as base_routes
    from .routes import items as items_routes
    from .routes import repairs as repairs_routes
    from .routes import meta as meta_routes
    from .routes import logs as logs_routes
    from .routes import maintenance as maintenance_routes

    app.include_router(base_routes.router)
    app.include_router(items_routes.router)
    app.include_router(repairs_routes.router)
    app.include_router(meta_routes.router)
    app.include_router(logs_routes.router)
    app.include_router(maintenance_routes.router)

    logger.info("raiderpal api ready: store=%s cache=%s", type(store).__name__, settings.cache_backend)
    return app
