from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import DataAccessError
from ..providers.rowstore import Query, QueryError, RowStore
from .contracts import ViewContract

QueryBuilder = Callable[[Query], Query]


def _format_error(contract: ViewContract, error: QueryError) -> str:
    code = f"[{error.code}] " if error.code else ""
    return (
        f"{code}query failed for relation '{contract.relation}' "
        f"(select: {contract.select}): {error.message}"
    )


def _parse_row(contract: ViewContract, row: Any, idx: Optional[int] = None) -> Dict[str, Any]:
    try:
        return contract.schema.model_validate(row).model_dump()
    except PydanticValidationError as e:
        where = f"row {idx}" if idx is not None else "row"
        raise DataAccessError(
            f"Invalid {where} for relation '{contract.relation}' (select: {contract.select}): {e}",
            code="db_contract",
        )


def _build(contract: ViewContract, build: Optional[QueryBuilder]) -> Query:
    q = Query(contract.relation).select(contract.select)
    return build(q) if build else q


def query_view(store: RowStore, contract: ViewContract, build: Optional[QueryBuilder] = None) -> List[Dict[str, Any]]:
    res = store.execute(_build(contract, build))
    if res.error is not None:
        raise DataAccessError(_format_error(contract, res.error))
    return [_parse_row(contract, r, i) for i, r in enumerate(res.rows)]


def query_view_maybe_single(store: RowStore, contract: ViewContract,
                            build: Optional[QueryBuilder] = None) -> Optional[Dict[str, Any]]:
    res = store.execute_maybe_single(_build(contract, build))
    if res.error is not None:
        raise DataAccessError(_format_error(contract, res.error))
    if not res.rows:
        return None
    return _parse_row(contract, res.rows[0])
