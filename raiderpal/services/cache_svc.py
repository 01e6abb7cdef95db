"""
Version-gated read-through cache.

An entry is served only while it is younger than its TTL *and* was stored at
the data version that is current now. LONG entries never expire by age, so a
version bump is the only thing that retires them. The current version itself
is memoised for the VERSION TTL, which bounds how long a bump can go unnoticed.

Reads never raise: storage trouble or a failed version lookup is a miss.
Only the loader passed to ``get_or_load`` can surface an error to the caller.
"""
from __future__ import annotations

import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from ..constants import CACHE
from ..db import get_conn
from ..repository.meta_repo import VersionRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TTLClass(str, Enum):
    DEFAULT = "DEFAULT"
    LONG = "LONG"
    VERSION = "VERSION"
    MODAL = "MODAL"

    @property
    def seconds(self) -> float:
        return CACHE[f"{self.value}_TTL"]


TTL = Union[TTLClass, float, int]


def ttl_seconds(ttl: TTL) -> float:
    if isinstance(ttl, TTLClass):
        return ttl.seconds
    return float(ttl)


class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at_version: int
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.stored_at)

    def is_valid(self, now: float, current_version: int) -> bool:
        fresh = math.isinf(self.ttl) or self.age(now) < self.ttl
        return fresh and self.stored_at_version == current_version


# ---------------- storage ----------------

class CacheStorage:
    """Port for entry storage; the cache owns every entry it writes here."""

    def read(self, key: str) -> Optional[CacheEntry]: ...
    def write(self, entry: CacheEntry) -> None: ...
    def delete(self, key: str) -> int: ...
    def delete_prefix(self, prefix: str) -> int: ...
    def clear(self) -> int: ...
    def entries(self) -> List[CacheEntry]: ...
    def count(self) -> int: ...
    def evict_oldest(self, n: int) -> int: ...


class MemoryCacheStorage(CacheStorage):
    """Dict under a lock. Distinct keys never interfere; same-key writes are last write wins."""

    def __init__(self):
        self._data: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._data.get(key)

    def write(self, entry: CacheEntry) -> None:
        with self._lock:
            self._data[entry.key] = entry

    def delete(self, key: str) -> int:
        with self._lock:
            return 1 if self._data.pop(key, None) is not None else 0

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def clear(self) -> int:
        with self._lock:
            n = len(self._data)
            self._data.clear()
            return n

    def entries(self) -> List[CacheEntry]:
        with self._lock:
            return list(self._data.values())

    def count(self) -> int:
        with self._lock:
            return len(self._data)

    def evict_oldest(self, n: int) -> int:
        with self._lock:
            doomed = sorted(self._data.values(), key=lambda e: e.stored_at)[:max(0, n)]
            for e in doomed:
                del self._data[e.key]
            return len(doomed)


CACHE_DDL = """
CREATE TABLE IF NOT EXISTS cache_entry (
  key TEXT PRIMARY KEY,
  value_json TEXT NOT NULL,
  stored_at_version INTEGER NOT NULL,
  stored_at REAL NOT NULL,
  ttl REAL
);
"""


class SqliteCacheStorage(CacheStorage):
    """Entries persisted in the local state DB; values must be JSON-serialisable. NULL ttl means infinite."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def ensure_schema(self) -> None:
        with get_conn(self.db_path) as conn:
            conn.executescript(CACHE_DDL)
            conn.commit()

    @staticmethod
    def _entry(r) -> CacheEntry:
        return CacheEntry(
            key=r["key"],
            value=json.loads(r["value_json"]),
            stored_at_version=int(r["stored_at_version"]),
            stored_at=float(r["stored_at"]),
            ttl=math.inf if r["ttl"] is None else float(r["ttl"]),
        )

    def read(self, key: str) -> Optional[CacheEntry]:
        with get_conn(self.db_path) as conn:
            r = conn.execute("SELECT * FROM cache_entry WHERE key=?", (key,)).fetchone()
        return self._entry(r) if r else None

    def write(self, entry: CacheEntry) -> None:
        with get_conn(self.db_path) as conn:
            conn.execute(
                "INSERT INTO cache_entry(key, value_json, stored_at_version, stored_at, ttl) VALUES(?,?,?,?,?) "
                "ON CONFLICT(key) DO UPDATE SET value_json=excluded.value_json, "
                "stored_at_version=excluded.stored_at_version, stored_at=excluded.stored_at, ttl=excluded.ttl",
                (
                    entry.key,
                    json.dumps(entry.value, ensure_ascii=False),
                    entry.stored_at_version,
                    entry.stored_at,
                    None if math.isinf(entry.ttl) else entry.ttl,
                ),
            )
            conn.commit()

    def delete(self, key: str) -> int:
        with get_conn(self.db_path) as conn:
            cur = conn.execute("DELETE FROM cache_entry WHERE key=?", (key,))
            conn.commit()
            return cur.rowcount

    def delete_prefix(self, prefix: str) -> int:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with get_conn(self.db_path) as conn:
            cur = conn.execute("DELETE FROM cache_entry WHERE key LIKE ? ESCAPE '\\'", (escaped + "%",))
            conn.commit()
            return cur.rowcount

    def clear(self) -> int:
        with get_conn(self.db_path) as conn:
            cur = conn.execute("DELETE FROM cache_entry")
            conn.commit()
            return cur.rowcount

    def entries(self) -> List[CacheEntry]:
        with get_conn(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM cache_entry").fetchall()
        return [self._entry(r) for r in rows]

    def count(self) -> int:
        with get_conn(self.db_path) as conn:
            return conn.execute("SELECT COUNT(1) AS cnt FROM cache_entry").fetchone()["cnt"]

    def evict_oldest(self, n: int) -> int:
        with get_conn(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM cache_entry WHERE key IN (SELECT key FROM cache_entry ORDER BY stored_at LIMIT ?)",
                (max(0, n),),
            )
            conn.commit()
            return cur.rowcount


# ---------------- version gate ----------------

class VersionGate:
    """Memoises the data version row for ``ttl`` seconds.

    ``current()`` raises whatever the reader raises; failures are not memoised.
    The reader runs outside the lock, so concurrent callers may each read once
    when the memo is stale; the last read wins. A read that started before
    ``reset()`` is not memoised.
    """

    def __init__(self, reader: Callable[[], Optional[VersionRecord]], clock: Clock = time.time,
                 ttl: TTL = TTLClass.VERSION):
        self._reader = reader
        self._clock = clock
        self._ttl = ttl_seconds(ttl)
        self._lock = threading.Lock()
        self._record: Optional[VersionRecord] = None
        self._fetched_at: Optional[float] = None
        self._generation = 0

    def current(self) -> Optional[VersionRecord]:
        with self._lock:
            now = self._clock()
            if self._fetched_at is not None and now - self._fetched_at < self._ttl:
                return self._record
            generation = self._generation
        record = self._reader()
        with self._lock:
            if generation == self._generation:
                self._record = record
                self._fetched_at = now
        return record

    def version(self) -> Optional[int]:
        rec = self.current()
        return rec.version if rec is not None else None

    def reset(self) -> None:
        with self._lock:
            self._record = None
            self._fetched_at = None
            self._generation += 1


# ---------------- cache ----------------

class ReadThroughCache:
    """Version-gated cache over a ``CacheStorage``.

    ``max_entries`` caps the storage: once a write pushes it past the cap, the
    oldest 20% (at least ``EVICT_MIN``) are dropped. ``None`` means no cap.
    """

    EVICT_FRACTION = 0.2
    EVICT_MIN = 5

    def __init__(self, gate: VersionGate, storage: Optional[CacheStorage] = None, clock: Clock = time.time,
                 max_entries: Optional[int] = CACHE["MAX_ENTRIES"]):
        self.gate = gate
        self.storage = storage if storage is not None else MemoryCacheStorage()
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._counters = {"hits": 0, "misses": 0, "expired": 0, "stored": 0, "cleared": 0}

    def _bump(self, name: str, n: int = 1) -> None:
        with self._lock:
            self._counters[name] += n

    def _current_version(self) -> Optional[int]:
        try:
            return self.gate.version()
        except Exception as e:
            logger.warning("cache: data version unavailable, treating as miss: %s", e)
            return None

    def get(self, key: str) -> Any:
        """Cached value for ``key`` or MISSING. Never calls the data source, never raises.

        An expired or version-mismatched entry is deleted on the way out.
        """
        current = self._current_version()
        if current is None:
            self._bump("misses")
            logger.debug("MISS %s reason=unknown-version", key)
            return MISSING
        try:
            entry = self.storage.read(key)
        except Exception as e:
            logger.warning("cache: read of %s failed, treating as miss: %s", key, e)
            self._bump("misses")
            return MISSING
        if entry is None:
            self._bump("misses")
            logger.debug("MISS %s reason=not-found version=%s", key, current)
            return MISSING
        now = self._clock()
        if not entry.is_valid(now, current):
            self._bump("expired")
            self._bump("misses")
            logger.debug(
                "EXPIRED %s age=%.0fs ttl=%s stored_version=%s current_version=%s",
                key, entry.age(now), "inf" if math.isinf(entry.ttl) else f"{entry.ttl:.0f}s",
                entry.stored_at_version, current,
            )
            self._removal(lambda: self.storage.delete(key), f"{key} reason=stale")
            return MISSING
        self._bump("hits")
        logger.debug("HIT %s age=%.0fs version=%s", key, entry.age(now), current)
        return entry.value

    def set(self, key: str, value: Any, ttl: TTL = TTLClass.DEFAULT, version: Optional[int] = None) -> bool:
        """Store ``value`` stamped with ``version`` (default: the current one) and the current time.

        Pass the version that was current when ``value`` was read. Returns False if nothing was stored.
        """
        stamp = version if version is not None else self._current_version()
        if stamp is None:
            return False
        entry = CacheEntry(
            key=key,
            value=value,
            stored_at_version=stamp,
            stored_at=self._clock(),
            ttl=ttl_seconds(ttl),
        )
        try:
            self.storage.write(entry)
        except Exception as e:
            logger.warning("cache: write of %s failed: %s", key, e)
            return False
        self._bump("stored")
        logger.debug("STORED %s version=%s", key, stamp)
        self._enforce_cap()
        return True

    def _enforce_cap(self) -> None:
        if not self.max_entries:
            return
        try:
            n = self.storage.count()
        except Exception as e:
            logger.warning("cache: entry count unavailable: %s", e)
            return
        if n <= self.max_entries:
            return
        doomed = max(self.EVICT_MIN, int(n * self.EVICT_FRACTION))
        self._removal(lambda: self.storage.evict_oldest(doomed), "oldest entries reason=eviction")

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: TTL = TTLClass.DEFAULT) -> Any:
        """Read-through. The entry is stamped with the version seen before ``loader`` ran."""
        value = self.get(key)
        if value is not MISSING:
            return value
        before = self._current_version()
        value = loader()
        if before is not None:
            self.set(key, value, ttl, version=before)
        return value

    def _removal(self, fn: Callable[[], int], what: str) -> int:
        try:
            n = fn()
        except Exception as e:
            logger.warning("cache: %s failed: %s", what, e)
            return 0
        self._bump("cleared", n)
        logger.debug("CLEARED %s count=%s", what, n)
        return n

    def invalidate(self, key: str) -> int:
        return self._removal(lambda: self.storage.delete(key), f"invalidate {key}")

    def invalidate_prefix(self, prefix: str) -> int:
        return self._removal(lambda: self.storage.delete_prefix(prefix), f"invalidate prefix {prefix}")

    def clear(self) -> int:
        return self._removal(self.storage.clear, "clear")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            out: Dict[str, Any] = dict(self._counters)
        try:
            entries = self.storage.entries()
        except Exception as e:
            logger.warning("cache: stats unavailable: %s", e)
            entries = []
        now = self._clock()
        out["entries"] = len(entries)
        out["oldest_age_s"] = round(max((e.age(now) for e in entries), default=0.0), 1)
        out["newest_age_s"] = round(min((e.age(now) for e in entries), default=0.0), 1)
        return out
