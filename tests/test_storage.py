"""Tests for storage backends."""

import json

from media_tracker.models import StoreSnapshot, TrackedShow
from media_tracker.storage import JsonFileStorage, MemoryStorage
from media_tracker.store import EntityStore


def test_missing_file_loads_empty(tmp_path):
    storage = JsonFileStorage(tmp_path / "missing.json")
    assert storage.load() == StoreSnapshot()


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "watchlist.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileStorage(path).load().entities() == []


def test_invalid_document_loads_empty(tmp_path):
    path = tmp_path / "watchlist.json"
    path.write_text(json.dumps({"shows": [{"kind": "show", "title": "no id"}]}), encoding="utf-8")
    assert JsonFileStorage(path).load().entities() == []


def test_save_then_reload(tmp_path):
    path = tmp_path / "nested" / "watchlist.json"
    storage = JsonFileStorage(path)
    storage.save(StoreSnapshot(shows=[TrackedShow(id=42, title="Severance")]))

    assert path.exists()
    assert not list(path.parent.glob("*.tmp"))
    reloaded = JsonFileStorage(path).load()
    assert [s.title for s in reloaded.shows] == ["Severance"]


def test_store_flushes_every_mutation(tmp_path):
    path = tmp_path / "watchlist.json"
    store = EntityStore(JsonFileStorage(path))
    store.add(TrackedShow(id=42, title="Severance"))
    store.toggle_favorite("show", 42)

    reopened = EntityStore(JsonFileStorage(path))
    assert reopened.get("show", 42).is_favorite is True


def test_store_absorbs_save_failure(tmp_path, monkeypatch):
    storage = JsonFileStorage(tmp_path / "watchlist.json")

    def fail(snapshot):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "save", fail)
    store = EntityStore(storage)
    assert store.add(TrackedShow(id=1, title="Still tracked"))
    assert store.is_tracked("show", 1)


def test_memory_storage_counts_saves():
    storage = MemoryStorage()
    store = EntityStore(storage)
    store.add(TrackedShow(id=1, title="One"))
    store.add(TrackedShow(id=1, title="One again"))
    assert storage.save_count == 1


def test_undecodable_file_loads_empty(tmp_path):
    path = tmp_path / "watchlist.json"
    path.write_bytes(b'{"shows": [\xff\xfe]}')

    store = EntityStore(JsonFileStorage(path))
    assert store.count() == 0
