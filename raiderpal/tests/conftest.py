import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

REVALIDATE_TOKEN = "test-revalidate-token"

DATA_TABLES = [
    "rp_app_metadata",
    "rp_items",
    "rp_crafting_components",
    "rp_recycling_components",
    "rp_repair_profiles",
    "rp_repair_recipes",
    "rp_repairable_items",
]


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "raiderpal_test.db"
    # Point the state DB (operation log) to this temp DB
    os.environ["RP_DB_PATH"] = str(path)
    # Initialize schema
    schema = Path(_PROJECT_ROOT / "schema.sql").read_text(encoding="utf-8")
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(schema)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture()
def settings(tmp_db_path):
    from raiderpal.config import Settings
    return Settings(
        data_url=f"sqlite:///{tmp_db_path}",
        db_path=tmp_db_path,
        revalidate_token=REVALIDATE_TOKEN,
    )


@pytest.fixture()
def store(settings):
    from raiderpal.providers import SqliteRowStore
    return SqliteRowStore(settings.sqlite_path)


@pytest.fixture()
def client(settings):
    from raiderpal.api import create_app
    from fastapi.testclient import TestClient
    return TestClient(create_app(settings))


@pytest.fixture()
def seed(tmp_db_path):
    """Insert rows: ``seed("rp_items", {"id": "a", ...}, ...)``."""
    def _seed(table, *rows):
        conn = sqlite3.connect(tmp_db_path)
        try:
            for row in rows:
                cols = list(row.keys())
                conn.execute(
                    f"INSERT INTO {table} ({','.join(cols)}) VALUES ({','.join('?' for _ in cols)})",
                    [row[c] for c in cols],
                )
            conn.commit()
        finally:
            conn.close()
    return _seed


@pytest.fixture()
def set_version(tmp_db_path):
    def _set(version, last_synced_at="2025-01-01T00:00:00Z", row_id="global"):
        conn = sqlite3.connect(tmp_db_path)
        try:
            conn.execute(
                "INSERT INTO rp_app_metadata(id, version, last_synced_at) VALUES(?,?,?) "
                "ON CONFLICT(id) DO UPDATE SET version=excluded.version, last_synced_at=excluded.last_synced_at",
                (row_id, version, last_synced_at),
            )
            conn.commit()
        finally:
            conn.close()
    return _set


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("RP_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in DATA_TABLES + ["operation_log", "cache_entry"]:
            try:
                conn.execute(f"DELETE FROM {t}")
            except sqlite3.OperationalError:
                pass  # table not created yet
        conn.commit()
    finally:
        conn.close()
    yield


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeVersionReader:
    """Stands in for meta_repo.get_data_version; counts calls, can be told to fail."""

    def __init__(self, version=1):
        self.version = version
        self.calls = 0
        self.error = None

    def __call__(self):
        from raiderpal.repository.meta_repo import VersionRecord
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.version is None:
            return None
        return VersionRecord(id="global", version=self.version, last_synced_at="2025-01-01T00:00:00Z")


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def reader():
    return FakeVersionReader()
