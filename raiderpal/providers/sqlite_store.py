from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any, Dict, List, Tuple

from ..db import get_conn
from .rowstore import Query, QueryResult, RowStore

logger = logging.getLogger(__name__)

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    if not _IDENT.match(name or ""):
        raise ValueError(f"invalid identifier: {name!r}")
    return name


class SqliteRowStore(RowStore):
    """Executes row-store queries against a local SQLite database (tables or views)."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def build_sql(self, query: Query) -> Tuple[str, List[Any]]:
        cols = query.column_list()
        select = ", ".join(_ident(c) for c in cols) if cols else "*"
        sql = f"SELECT {select} FROM {_ident(query.relation)}"
        where: List[str] = []
        params: List[Any] = []
        for f in query.filters:
            if f.op == "eq":
                where.append(f"{_ident(f.column)} = ?")
                params.append(f.value)
            elif f.op == "in":
                if not f.value:
                    where.append("0")
                    continue
                where.append(f"{_ident(f.column)} IN ({','.join(['?'] * len(f.value))})")
                params.extend(f.value)
            elif f.op == "not_null":
                where.append(f"{_ident(f.column)} IS NOT NULL")
            elif f.op == "ilike_any":
                ors = [f"{_ident(c)} LIKE ?" for c in f.column]
                where.append("(" + " OR ".join(ors) + ")")
                params.extend([f"%{f.value}%"] * len(f.column))
            else:
                raise ValueError(f"unsupported filter: {f.op}")
        if where:
            sql += " WHERE " + " AND ".join(where)
        if query.ordering:
            sql += " ORDER BY " + ", ".join(
                f"{_ident(c)} {'ASC' if asc else 'DESC'}" for c, asc in query.ordering
            )
        if query.max_rows is not None:
            sql += " LIMIT ?"
            params.append(query.max_rows)
            if query.offset:
                sql += " OFFSET ?"
                params.append(query.offset)
        elif query.offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(query.offset)
        return sql, params

    def execute(self, query: Query) -> QueryResult:
        try:
            sql, params = self.build_sql(query)
        except ValueError as e:
            return QueryResult.failed(str(e), code="bad_query")
        try:
            with get_conn(self.db_path) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.warning("sqlite query on %s failed: %s", query.relation, e)
            return QueryResult.failed(str(e), code=type(e).__name__)
        out: List[Dict[str, Any]] = [dict(r) for r in rows]
        return QueryResult(rows=out)
