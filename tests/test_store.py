"""Tests for the key/value store backends."""

from __future__ import annotations

import json

import pytest

from turboloader.store import (
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    SqlStore,
    iter_entries,
    open_store,
)


def _exercise(store):
    assert store.keys() == []
    assert not store.has("a")
    assert store.get("a") is None

    store.set("b", "2")
    store.set("a", "1")
    assert store.has("a")
    assert store.get("a") == "1"
    assert store.keys() == ["b", "a"]

    store.set("b", "3")
    assert store.get("b") == "3"
    # Updating a value keeps its position
    assert store.keys() == ["b", "a"]

    store.remove("b")
    store.remove("missing")
    assert store.keys() == ["a"]


class TestInMemoryStore:
    def test_basic_operations(self):
        _exercise(InMemoryStore())

    def test_initial_entries(self):
        store = InMemoryStore({"x": "1", "y": "2"})
        assert list(iter_entries(store)) == [("x", "1"), ("y", "2")]
        assert len(store) == 2

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryStore(), KeyValueStore)


class TestJsonFileStore:
    def test_basic_operations(self, tmp_path):
        _exercise(JsonFileStore(tmp_path / "ls.json"))

    def test_persists_every_write(self, tmp_path):
        path = tmp_path / "ls.json"
        store = JsonFileStore(path)
        store.set("k", "v")

        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}
        assert JsonFileStore(path).get("k") == "v"

    def test_non_string_values_are_serialized(self, tmp_path):
        path = tmp_path / "ls.json"
        path.write_text(json.dumps({"k": {"data": "PolyTrack1AAA"}}), encoding="utf-8")
        store = JsonFileStore(path)
        assert json.loads(store.get("k")) == {"data": "PolyTrack1AAA"}

    def test_rejects_non_object(self, tmp_path):
        path = tmp_path / "ls.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            JsonFileStore(path)

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "ls.json")
        assert store.keys() == []
        store.set("a", "1")
        assert (tmp_path / "nested" / "ls.json").exists()


class TestSqlStore:
    def test_basic_operations(self, tmp_path):
        store = SqlStore(tmp_path / "ls.db")
        try:
            _exercise(store)
        finally:
            store.close()

    def test_persists(self, tmp_path):
        path = tmp_path / "ls.db"
        store = SqlStore(path)
        store.set("k", "v")
        store.close()

        reopened = SqlStore(path)
        assert reopened.get("k") == "v"
        reopened.close()

    def test_requires_location(self):
        with pytest.raises(ValueError):
            SqlStore()

    def test_satisfies_protocol(self, tmp_path):
        store = SqlStore(tmp_path / "ls.db")
        assert isinstance(store, KeyValueStore)
        store.close()


class TestOpenStore:
    def test_json_suffix(self, tmp_path):
        assert isinstance(open_store(tmp_path / "a.json"), JsonFileStore)

    def test_sql_suffix(self, tmp_path):
        store = open_store(tmp_path / "a.sqlite")
        assert isinstance(store, SqlStore)
        store.close()

    def test_explicit_backend(self, tmp_path):
        assert isinstance(open_store(tmp_path / "dump.txt", "json"), JsonFileStore)
        assert isinstance(open_store(tmp_path / "ignored", "memory"), InMemoryStore)

    def test_unknown_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            open_store(tmp_path / "a.bin")

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(ValueError):
            open_store(tmp_path / "a.json", "redis")
