from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import httpx

from .rowstore import Query, QueryResult, RowStore

logger = logging.getLogger(__name__)


def _quote(value: Any) -> str:
    s = str(value)
    if any(ch in s for ch in ',()"'):
        s = s.replace('"', '\\"')
        return f'"{s}"'
    return s


class PostgrestRowStore(RowStore):
    """Thin wrapper around a hosted PostgREST endpoint (``{url}/rest/v1/{relation}``).

    Reads only. Every request is a single GET; transport and HTTP failures come
    back as error results, nothing is retried.
    """

    def __init__(self, url: str, api_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = url.rstrip("/") + "/rest/v1"
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Cache-Control": "no-store",
            },
            timeout=timeout,
            transport=transport,
        )

    def build_params(self, query: Query) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = [("select", query.columns)]
        for f in query.filters:
            if f.op == "eq":
                params.append((f.column, f"eq.{f.value}"))
            elif f.op == "in":
                params.append((f.column, "in.(" + ",".join(_quote(v) for v in f.value) + ")"))
            elif f.op == "not_null":
                params.append((f.column, "not.is.null"))
            elif f.op == "ilike_any":
                pattern = f"*{f.value}*"
                params.append(("or", "(" + ",".join(f"{c}.ilike.{pattern}" for c in f.column) + ")"))
            else:
                raise ValueError(f"unsupported filter: {f.op}")
        if query.ordering:
            params.append(("order", ",".join(f"{c}.{'asc' if asc else 'desc'}" for c, asc in query.ordering)))
        if query.max_rows is not None:
            params.append(("limit", str(query.max_rows)))
        if query.offset:
            params.append(("offset", str(query.offset)))
        return params

    def execute(self, query: Query) -> QueryResult:
        try:
            params = self.build_params(query)
        except ValueError as e:
            return QueryResult.failed(str(e), code="bad_query")
        try:
            resp = self._client.get(f"/{query.relation}", params=params)
        except httpx.RequestError as e:
            logger.warning("row store request for %s failed: %s", query.relation, e)
            return QueryResult.failed(f"request failed: {e}", code="network_error")

        if resp.status_code >= 400:
            message, code = self._read_error(resp)
            return QueryResult.failed(message, code=code)

        try:
            data = resp.json()
        except ValueError:
            return QueryResult.failed("response is not valid JSON", code="bad_response")
        if data is None:
            return QueryResult(rows=[])
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            return QueryResult.failed("response is not a row list", code="bad_response")
        return QueryResult(rows=[r for r in data if isinstance(r, dict)])

    @staticmethod
    def _read_error(resp: httpx.Response) -> Tuple[str, str]:
        code = str(resp.status_code)
        try:
            body = resp.json()
        except ValueError:
            return (resp.text[:500] or f"HTTP {resp.status_code}"), code
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error") or f"HTTP {resp.status_code}"
            return str(msg), str(body.get("code") or code)
        return f"HTTP {resp.status_code}", code

    def close(self) -> None:
        self._client.close()
