"""Row-store providers: SQLite for local data, PostgREST for the hosted database."""
from __future__ import annotations

from ..config import Settings
from .postgrest_store import PostgrestRowStore
from .rowstore import Query, QueryError, QueryResult, RowStore
from .sqlite_store import SqliteRowStore


def create_row_store(settings: Settings) -> RowStore:
    if settings.is_hosted:
        return PostgrestRowStore(settings.data_url, settings.data_key or "", timeout=settings.request_timeout)
    return SqliteRowStore(settings.sqlite_path)


__all__ = [
    "Query",
    "QueryError",
    "QueryResult",
    "RowStore",
    "SqliteRowStore",
    "PostgrestRowStore",
    "create_row_store",
]
