"""Tests for backup export and import."""

import json

import pytest

from media_tracker.backup import BackupError, ImportMode, export_backup, export_preview, import_backup, read_backup
from media_tracker.models import TrackedShow
from media_tracker.storage import MemoryStorage
from media_tracker.store import EntityStore


def test_export_writes_document(populated_store, tmp_path):
    populated_store.mark_episode_watched(42, 1, 1)
    path = tmp_path / "backups" / "export.json"

    export = export_backup(populated_store, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["app"] == "MediaTracker"
    assert raw["version"] == export.version
    assert raw["stats"]["total_shows"] == 1
    assert raw["stats"]["total_watched_episodes"] == 1
    assert raw["data"]["books"][0]["id"] == "OL27448W"


def test_export_preview(populated_store):
    preview = export_preview(populated_store)
    assert (preview.total_shows, preview.total_movies, preview.total_mangas, preview.total_books) == (1, 1, 1, 1)


def test_import_merge_keeps_existing(populated_store, tmp_path):
    path = tmp_path / "export.json"
    export_backup(populated_store, path)

    target = EntityStore(MemoryStorage())
    target.add(TrackedShow(id=42, title="Local title"))

    assert import_backup(target, path) == 3
    assert target.get("show", 42).title == "Local title"
    assert target.get("book", "OL27448W").authors == ["J.R.R. Tolkien"]


def test_import_replace(populated_store, tmp_path):
    path = tmp_path / "export.json"
    export_backup(populated_store, path)

    target = EntityStore(MemoryStorage())
    target.add(TrackedShow(id=99, title="Gone after replace"))

    assert import_backup(target, path, ImportMode.REPLACE) == 4
    assert not target.is_tracked("show", 99)
    assert target.get("show", 42).title == "Severance"


def test_foreign_file_rejected(tmp_path, store):
    path = tmp_path / "other.json"
    path.write_text(json.dumps({"app": "SomethingElse", "data": {}}), encoding="utf-8")
    with pytest.raises(BackupError):
        import_backup(store, path)


def test_corrupt_file_rejected(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(BackupError):
        read_backup(path)

    path.write_text(json.dumps({"app": "MediaTracker", "data": {"shows": [{"title": "no id"}]}}), encoding="utf-8")
    with pytest.raises(BackupError):
        read_backup(path)

    with pytest.raises(BackupError):
        read_backup(tmp_path / "missing.json")


def test_undecodable_file_rejected(tmp_path):
    path = tmp_path / "binary.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(BackupError):
        read_backup(path)
