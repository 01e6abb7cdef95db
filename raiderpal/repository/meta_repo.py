"""Data version row: the single ``global`` record stamped by the upstream sync job."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..constants import VERSION_ROW_ID
from ..providers.rowstore import RowStore
from .contracts import VIEW_CONTRACTS
from .query import query_view, query_view_maybe_single

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionRecord:
    id: str
    version: int
    last_synced_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"version": self.version, "last_synced_at": self.last_synced_at}


def get_data_version(store: RowStore) -> Optional[VersionRecord]:
    """Read the current data version.

    Returns None only when the metadata relation is empty. If the ``global``
    row is missing but some other row exists, that row is used and a warning
    logged. Read failures raise DataAccessError.
    """
    contract = VIEW_CONTRACTS["data_version"]
    row = query_view_maybe_single(store, contract, lambda q: q.eq("id", VERSION_ROW_ID))
    resolved = row
    if resolved is None:
        fallback = query_view(store, contract, lambda q: q.limit(1))
        resolved = fallback[0] if fallback else None
    if resolved is None:
        return None
    if row is None:
        logger.warning(
            "dataset version row missing expected id '%s'; using fallback row %s",
            VERSION_ROW_ID, resolved["id"],
        )
    return VersionRecord(
        id=resolved["id"],
        version=int(resolved["version"]),
        last_synced_at=resolved.get("last_synced_at"),
    )


def check_version_invariants(rows: List[Dict[str, Any]]) -> None:
    """Raise ValueError unless ``rows`` is exactly one well-formed version row."""
    if len(rows) != 1:
        raise ValueError(f"Invariant failed: expected exactly 1 dataset version row, got {len(rows)}")
    for row in rows:
        version = row.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError("Invariant failed: version must be an integer")
        ts = row.get("last_synced_at")
        if not isinstance(ts, str):
            raise ValueError("Invariant failed: last_synced_at must be a valid date string")
        try:
            datetime.fromisoformat(ts.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("Invariant failed: last_synced_at must be a valid date string")


def list_version_rows(store: RowStore) -> List[Dict[str, Any]]:
    return query_view(store, VIEW_CONTRACTS["data_version"])
