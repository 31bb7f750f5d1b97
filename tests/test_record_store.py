from __future__ import annotations

import pytest

from scorecard.app.record_store import (
    BACKEND_LOCAL_JSON,
    BACKEND_LOCAL_SQLITE,
    BACKEND_MEMORY,
    DRAFT_KEY,
    InMemoryRecordStore,
    LocalJsonRecordStore,
    LocalSqliteRecordStore,
    RecordCorruptError,
    RecordStoreError,
    create_record_store,
    normalize_backend,
)
from scorecard.core.event_stream import CHANGE_DELETE, CHANGE_PUT


@pytest.fixture(params=[BACKEND_MEMORY, BACKEND_LOCAL_JSON, BACKEND_LOCAL_SQLITE])
def store(request, tmp_path):
    instance = create_record_store(request.param, tmp_path / "data")
    yield instance
    instance.close()


def test_put_get_delete_keys(store):
    store.put(DRAFT_KEY, {"location": "draft"})
    store.put("2023-10-27T10:00:00.000001", {"location": "Sample Station", "isSynced": False})

    assert store.keys() == {DRAFT_KEY, "2023-10-27T10:00:00.000001"}
    assert store.get("2023-10-27T10:00:00.000001") == {"location": "Sample Station", "isSynced": False}
    assert store.contains(DRAFT_KEY)

    store.delete(DRAFT_KEY)

    assert store.get(DRAFT_KEY) is None
    assert not store.contains(DRAFT_KEY)
    assert store.keys() == {"2023-10-27T10:00:00.000001"}


def test_put_overwrites(store):
    store.put("a", {"isSynced": False})
    store.put("a", {"isSynced": True})

    assert store.get("a") == {"isSynced": True}
    assert store.keys() == {"a"}


def test_get_returns_a_fresh_copy(store):
    store.put("a", {"nested": {"x": 1}})
    first = store.get("a")
    first["nested"]["x"] = 99

    assert store.get("a") == {"nested": {"x": 1}}


def test_delete_missing_key_is_silent(store):
    seen = []
    store.changes.subscribe(seen.append)

    store.delete("never-there")

    assert seen == []


def test_changes_are_published(store):
    seen = []
    store.changes.subscribe(lambda change: seen.append((change.change_type, change.key)))

    store.put("a", {"x": 1})
    store.delete("a")

    assert seen == [(CHANGE_PUT, "a"), (CHANGE_DELETE, "a")]


def test_put_rejects_non_mapping(store):
    with pytest.raises(TypeError):
        store.put("a", ["not", "a", "mapping"])


def test_put_rejects_unserializable_values(store):
    with pytest.raises(RecordStoreError):
        store.put("a", {"value": object()})


@pytest.mark.parametrize("backend", [BACKEND_LOCAL_JSON, BACKEND_LOCAL_SQLITE])
def test_completed_put_survives_reopen(backend, tmp_path):
    first = create_record_store(backend, tmp_path)
    first.put("2023-10-27T10:00:00.000001", {"trainNo": "12309"})
    first.close()

    second = create_record_store(backend, tmp_path)

    assert second.get("2023-10-27T10:00:00.000001") == {"trainNo": "12309"}


def test_sqlite_corrupt_payload_raises(tmp_path):
    store = LocalSqliteRecordStore(tmp_path)
    store.put_raw("bad", "{not json")

    with pytest.raises(RecordCorruptError) as excinfo:
        store.get("bad")
    assert excinfo.value.key == "bad"
    assert "bad" in store.keys()


def test_memory_corrupt_payload_raises():
    store = InMemoryRecordStore()
    store.put_raw("bad", "][")

    with pytest.raises(RecordCorruptError):
        store.get("bad")


def test_json_store_recovers_from_backup(tmp_path):
    store = LocalJsonRecordStore(tmp_path)
    store.put("first", {"n": 1})
    store.put("second", {"n": 2})
    store.storage_file_path.write_text("{ truncated", encoding="utf-8")

    reopened = LocalJsonRecordStore(tmp_path)

    assert reopened.get("first") == {"n": 1}
    assert reopened.get("second") is None
    assert "backup" in reopened.load_warning


def test_json_store_without_backup_raises(tmp_path):
    store = LocalJsonRecordStore(tmp_path)
    tmp_path.mkdir(parents=True, exist_ok=True)
    store.storage_file_path.write_text("[]", encoding="utf-8")

    with pytest.raises(RecordStoreError):
        store.keys()


def test_create_record_store_selects_backend(tmp_path):
    assert isinstance(create_record_store("memory", tmp_path), InMemoryRecordStore)
    assert isinstance(create_record_store("local_json", tmp_path), LocalJsonRecordStore)
    assert isinstance(create_record_store("local_sqlite", tmp_path), LocalSqliteRecordStore)
    assert isinstance(create_record_store("hive", tmp_path), LocalSqliteRecordStore)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("MEMORY", BACKEND_MEMORY),
        (" local_json ", BACKEND_LOCAL_JSON),
        ("", BACKEND_LOCAL_SQLITE),
        (None, BACKEND_LOCAL_SQLITE),
        ("cloud", BACKEND_LOCAL_SQLITE),
    ],
)
def test_normalize_backend(value, expected):
    assert normalize_backend(value) == expected
