"""Row-store boundary: the only place the service talks to its database.

A ``Query`` describes ``select(columns) -> filter(...) -> order(...)`` against
one relation (usually a pre-built view). A ``RowStore`` executes it and hands
back a ``QueryResult`` that carries either rows or an error; stores never raise
for query failures, the repository layer decides what an error means.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class QueryError:
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class QueryResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, message: str, code: Optional[str] = None) -> "QueryResult":
        return cls(rows=[], error=QueryError(message=message, code=code))


@dataclass(frozen=True)
class Filter:
    op: str  # eq | in | not_null | ilike_any
    column: Any  # str, or tuple of str for ilike_any
    value: Any = None


@dataclass(frozen=True)
class Query:
    """Immutable query description; every builder call returns a new Query."""

    relation: str
    columns: str = "*"
    filters: Tuple[Filter, ...] = ()
    ordering: Tuple[Tuple[str, bool], ...] = ()
    offset: Optional[int] = None
    max_rows: Optional[int] = None

    def select(self, columns: str) -> "Query":
        return replace(self, columns=normalize_columns(columns))

    def eq(self, column: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (Filter("eq", column, value),))

    def in_(self, column: str, values) -> "Query":
        return replace(self, filters=self.filters + (Filter("in", column, tuple(values)),))

    def not_null(self, column: str) -> "Query":
        return replace(self, filters=self.filters + (Filter("not_null", column),))

    def ilike_any(self, columns, pattern: str) -> "Query":
        """Match when any of ``columns`` contains ``pattern`` (case-insensitive)."""
        return replace(self, filters=self.filters + (Filter("ilike_any", tuple(columns), pattern),))

    def order(self, column: str, ascending: bool = True) -> "Query":
        return replace(self, ordering=self.ordering + ((column, ascending),))

    def range(self, start: int, end: int) -> "Query":
        """Inclusive row range, as in ``range(0, 9)`` for the first ten rows."""
        start = max(0, int(start))
        end = max(start, int(end))
        return replace(self, offset=start, max_rows=end - start + 1)

    def limit(self, n: int) -> "Query":
        return replace(self, max_rows=max(0, int(n)))

    def column_list(self) -> List[str]:
        if self.columns == "*":
            return []
        return self.columns.split(",")


def normalize_columns(columns: str) -> str:
    cols = [c.strip() for c in (columns or "").replace("\n", " ").split(",")]
    cols = [c for c in cols if c]
    return ",".join(cols) if cols else "*"


class RowStore:
    """Port implemented by the SQLite and PostgREST stores."""

    def execute(self, query: Query) -> QueryResult: ...

    def execute_maybe_single(self, query: Query) -> QueryResult:
        """Zero or one row; more than one is an error result."""
        res = self.execute(query.limit(2))
        if not res.ok:
            return res
        if len(res.rows) > 1:
            return QueryResult.failed(
                f"expected at most one row from '{query.relation}', got several",
                code="PGRST116",
            )
        return res

    def close(self) -> None:
        pass
