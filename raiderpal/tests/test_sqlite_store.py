from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from raiderpal.api import create_app
from raiderpal.providers import Query, SqliteRowStore


def test_build_sql_parameterises_values(store):
    sql, params = store.build_sql(
        Query("rp_view_items").select("id, name").eq("rarity", "Rare").in_("id", ["a", "b"]).order("name").range(5, 9)
    )
    assert sql == (
        "SELECT id, name FROM rp_view_items WHERE rarity = ? AND id IN (?,?) ORDER BY name ASC LIMIT ? OFFSET ?"
    )
    assert params == ["Rare", "a", "b", 5, 5]


def test_bad_identifier_is_error_result(store):
    res = store.execute(Query("rp_view_items; DROP TABLE rp_items"))
    assert res.error.code == "bad_query"


def test_missing_relation_is_error_result(store):
    res = store.execute(Query("rp_view_nothing"))
    assert not res.ok
    assert "no such table" in res.error.message


def test_maybe_single_rejects_several_rows(store, seed):
    seed("rp_items", {"id": "a", "name": "Same"}, {"id": "b", "name": "Same"})
    res = store.execute_maybe_single(Query("rp_view_items").eq("name", "Same"))
    assert res.error.code == "PGRST116"


def test_empty_in_matches_nothing(store, seed):
    seed("rp_items", {"id": "a"})
    assert store.execute(Query("rp_view_items").in_("id", [])).rows == []


def test_app_with_sqlite_cache_backend(settings, seed, set_version):
    set_version(1)
    seed("rp_items", {"id": "a", "name": "A"})
    client = TestClient(create_app(replace(settings, cache_backend="sqlite")))
    assert len(client.get("/api/items").json()) == 1
    assert isinstance(client.app.state.store, SqliteRowStore)
    assert client.get("/api/cache/stats").json()["entries"] == 1
