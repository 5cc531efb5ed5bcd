"""Export and import of the watchlist as a JSON backup file."""

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .constants import EXPORT_APP_NAME, EXPORT_VERSION
from .models import StoreSnapshot, utcnow
from .store import EntityStore

logger = logging.getLogger(__name__)


class BackupError(ValueError):
    """Raised when a backup file is not a valid MediaTracker export."""


class ImportMode(str, Enum):
    """How imported entries combine with the current store."""

    MERGE = "merge"
    REPLACE = "replace"


class ExportStats(BaseModel):
    total_shows: int = 0
    total_movies: int = 0
    total_mangas: int = 0
    total_books: int = 0
    total_watched_episodes: int = 0


class ExportFile(BaseModel):
    """Backup file document."""

    version: str = EXPORT_VERSION
    exported_at: datetime = Field(default_factory=utcnow)
    app: str = EXPORT_APP_NAME
    data: StoreSnapshot
    stats: ExportStats = Field(default_factory=ExportStats)


def _stats_for(snapshot: StoreSnapshot) -> ExportStats:
    return ExportStats(
        total_shows=len(snapshot.shows),
        total_movies=len(snapshot.movies),
        total_mangas=len(snapshot.mangas),
        total_books=len(snapshot.books),
        total_watched_episodes=sum(len(show.watched_episodes) for show in snapshot.shows),
    )


def export_preview(store: EntityStore) -> ExportStats:
    """Counts of what an export would contain."""
    return _stats_for(store.snapshot())


def export_backup(store: EntityStore, path: Path) -> ExportFile:
    """Write the whole store to a backup file."""
    snapshot = store.snapshot()
    export = ExportFile(data=snapshot, stats=_stats_for(snapshot))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(export.model_dump(mode="json"), f, indent=2)

    logger.info(f"Exported {len(snapshot.entities())} entries to {path}")
    return export


def read_backup(path: Path) -> ExportFile:
    """Load and validate a backup file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BackupError(f"Cannot read backup file {path}: {e}") from e

    if not isinstance(raw, dict) or raw.get("app") != EXPORT_APP_NAME:
        raise BackupError(f"{path} was not created by {EXPORT_APP_NAME}")

    try:
        return ExportFile.model_validate(raw)
    except ValidationError as e:
        raise BackupError(f"Backup file {path} is corrupted or invalid: {e}") from e


def import_backup(store: EntityStore, path: Path, mode: ImportMode = ImportMode.MERGE) -> int:
    """Import a backup into the store.

    MERGE adds only entries whose id is not tracked yet; REPLACE discards the
    current store first. Returns the number of entries added.
    """
    export = read_backup(path)
    mode = ImportMode(mode)

    if mode == ImportMode.REPLACE:
        store.replace(export.data)
        added = store.count()
    else:
        added = store.merge(export.data)

    logger.info(f"Imported {added} entries from {path} ({mode.value})")
    return added
