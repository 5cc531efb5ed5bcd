"""Durable storage backends for the entity store."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import StoreSnapshot

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Where the store snapshot lives between runs."""

    @abstractmethod
    def load(self) -> StoreSnapshot:
        """Load the persisted snapshot (empty when nothing was saved yet)."""
        ...

    @abstractmethod
    def save(self, snapshot: StoreSnapshot) -> bool:
        """Persist the snapshot. Returns True on success."""
        ...


class MemoryStorage(StorageBackend):
    """Keeps the snapshot in memory. Used for tests and dry runs."""

    def __init__(self, snapshot: Optional[StoreSnapshot] = None):
        self._document = snapshot.model_dump(mode="json") if snapshot else None
        self.save_count = 0

    def load(self) -> StoreSnapshot:
        if self._document is None:
            return StoreSnapshot()
        return StoreSnapshot.model_validate(self._document)

    def save(self, snapshot: StoreSnapshot) -> bool:
        self._document = snapshot.model_dump(mode="json")
        self.save_count += 1
        return True


class JsonFileStorage(StorageBackend):
    """Stores the snapshot as a JSON document on disk."""

    def __init__(self, path: Path):
        """Initialize storage with file path."""
        self.path = Path(path)

    def load(self) -> StoreSnapshot:
        """Load snapshot from file."""
        if not self.path.exists():
            logger.info(f"No watchlist file at {self.path}, starting empty")
            return StoreSnapshot()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return StoreSnapshot.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load watchlist from {self.path}: {e}")
            return StoreSnapshot()

    def save(self, snapshot: StoreSnapshot) -> bool:
        """Write the snapshot atomically (temp file, then replace)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.model_dump(mode="json"), f, indent=4)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Watchlist saved to {self.path}")
        return True
