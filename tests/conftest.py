"""Shared fixtures."""

from datetime import date

import pytest

from media_tracker import config
from media_tracker.models import TrackedBook, TrackedManga, TrackedMovie, TrackedShow, TrackingStatus
from media_tracker.storage import MemoryStorage
from media_tracker.store import EntityStore


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return EntityStore(storage)


@pytest.fixture
def populated_store(store):
    """Store with one entry of each kind."""
    store.add(TrackedShow(id=42, title="Severance", status=TrackingStatus.WATCHING))
    store.add(TrackedMovie(id=7, title="Dune: Part Two", release_date=date(2024, 3, 1)))
    store.add(TrackedManga(id=30013, title="One Piece", total_chapters=1100))
    store.add(TrackedBook(id="OL27448W", title="The Hobbit", total_pages=310, authors=["J.R.R. Tolkien"]))
    return store


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Write a config.yaml pointing storage at tmp_path and reset the settings singleton."""
    storage_path = tmp_path / "watchlist.json"
    path = tmp_path / "config.yaml"
    path.write_text(
        "tmdb:\n"
        "  api_key: abc123\n"
        "storage:\n"
        f"  path: {storage_path.as_posix()}\n"
        "app:\n"
        "  log_level: warning\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))
    monkeypatch.delenv(config.API_KEY_ENV_VAR, raising=False)
    monkeypatch.setattr(config, "_SETTINGS_SINGLETON", None)
    return path
