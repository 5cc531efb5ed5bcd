"""Entity store: the single owner of all tracked entries.

Every mutation is applied to the in-memory state, in the order callers issue
them, and then flushed to the storage backend before the call returns.
Readers only ever get deep copies.

Unknown ids, invalid values and duplicate inserts are absorbed: the call
becomes a no-op and returns False instead of raising.
"""

import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError

from .constants import DATE_FIELD_BY_KIND, DateField, MediaKind
from .models import (
    METADATA_FIELDS,
    PROGRESS_FIELDS,
    SNAPSHOT_FIELDS,
    SeasonInfo,
    StoreSnapshot,
    TrackedMovie,
    TrackedShow,
    WatchedEpisode,
    parse_entity,
    utcnow,
)
from .status import is_legal_transition, parse_status, toggle_completed, toggle_watching
from .storage import StorageBackend

logger = logging.getLogger(__name__)

EntityId = Union[int, str]


class EntityStore:
    """Persisted mapping of tracked entities per media kind."""

    def __init__(self, storage: StorageBackend):
        """Initialize the store and load the persisted snapshot."""
        self._storage = storage
        self._entities: dict[MediaKind, dict] = {kind: {} for kind in MediaKind}
        self._load(storage.load())

    def _load(self, snapshot: StoreSnapshot) -> None:
        for kind in MediaKind:
            bucket = self._entities[kind]
            for entity in snapshot.entities(kind):
                bucket.setdefault(entity.id, entity.model_copy(deep=True))
        logger.info(f"Loaded {self.count()} tracked entries")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _kind(kind) -> Optional[MediaKind]:
        try:
            return MediaKind(kind)
        except ValueError:
            logger.warning(f"Unknown media kind: {kind!r}")
            return None

    @staticmethod
    def _normalize_id(kind: MediaKind, entity_id) -> Optional[EntityId]:
        """Coerce an id to the type its kind uses (str for books, int otherwise)."""
        if entity_id is None:
            return None
        if kind == MediaKind.BOOK:
            return str(entity_id)
        try:
            return int(entity_id)
        except (TypeError, ValueError):
            return None

    def _lookup(self, kind, entity_id):
        """Return (kind, id, live entity) or None when not tracked."""
        media_kind = self._kind(kind)
        if media_kind is None:
            return None
        normalized = self._normalize_id(media_kind, entity_id)
        entity = self._entities[media_kind].get(normalized)
        if entity is None:
            logger.debug(f"No tracked {media_kind.value} with id {entity_id!r}, ignoring")
            return None
        return media_kind, normalized, entity

    @staticmethod
    def _revalidate(entity, updates: dict):
        """Rebuild an entity with updates applied so model invariants run again."""
        data = entity.model_dump()
        data.update(updates)
        try:
            return type(entity).model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid update for {entity.media_kind.value} {entity.id}: {e}")
            return None

    def _commit(self, kind: MediaKind, entity) -> bool:
        self._entities[kind][entity.id] = entity
        self._flush()
        return True

    def _flush(self) -> bool:
        """Write the whole snapshot to storage."""
        try:
            return self._storage.save(self.snapshot())
        except OSError as e:
            logger.error(f"Failed to persist watchlist: {e}")
            return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        """Deep copy of the whole store."""
        data = {
            SNAPSHOT_FIELDS[kind]: [e.model_copy(deep=True) for e in bucket.values()]
            for kind, bucket in self._entities.items()
        }
        return StoreSnapshot(**data)

    def query(self, kind=None, predicate: Optional[Callable] = None) -> list:
        """Return copies of the entities matching kind and predicate."""
        if kind is None:
            kinds = list(MediaKind)
        else:
            media_kind = self._kind(kind)
            if media_kind is None:
                return []
            kinds = [media_kind]

        results = []
        for media_kind in kinds:
            for entity in self._entities[media_kind].values():
                copy = entity.model_copy(deep=True)
                if predicate is None or predicate(copy):
                    results.append(copy)
        return results

    def get(self, kind, entity_id):
        """Return a copy of one entity, or None."""
        found = self._lookup(kind, entity_id)
        return found[2].model_copy(deep=True) if found else None

    def is_tracked(self, kind, entity_id) -> bool:
        return self._lookup(kind, entity_id) is not None

    def count(self, kind=None) -> int:
        if kind is None:
            return sum(len(bucket) for bucket in self._entities.values())
        media_kind = self._kind(kind)
        return len(self._entities[media_kind]) if media_kind else 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def add(self, entity) -> bool:
        """Start tracking an entity. No-op if its (kind, id) is already tracked."""
        try:
            if isinstance(entity, dict):
                entity = parse_entity(entity)
            else:
                entity = type(entity).model_validate(entity.model_dump())
        except ValidationError as e:
            logger.warning(f"Ignoring invalid entity: {e}")
            return False

        kind = entity.media_kind
        if entity.id in self._entities[kind]:
            logger.debug(f"{kind.value} {entity.id} already tracked, ignoring add")
            return False

        logger.info(f"Tracking {kind.value} {entity.id}: {entity.title}")
        return self._commit(kind, entity)

    def remove(self, kind, entity_id) -> bool:
        """Stop tracking an entity, dropping its watched episodes with it."""
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, normalized, entity = found
        del self._entities[media_kind][normalized]
        logger.info(f"Removed {media_kind.value} {normalized}: {entity.title}")
        self._flush()
        return True

    def clear(self) -> None:
        """Remove every tracked entity."""
        for bucket in self._entities.values():
            bucket.clear()
        self._flush()

    def merge(self, snapshot: StoreSnapshot) -> int:
        """Add entities from a snapshot whose id is not tracked yet."""
        added = 0
        for entity in snapshot.entities():
            bucket = self._entities[entity.media_kind]
            if entity.id not in bucket:
                bucket[entity.id] = entity.model_copy(deep=True)
                added += 1
        if added:
            self._flush()
        return added

    def replace(self, snapshot: StoreSnapshot) -> None:
        """Replace the whole store with a snapshot."""
        for bucket in self._entities.values():
            bucket.clear()
        self._load(snapshot)
        self._flush()

    # ------------------------------------------------------------------
    # Status and favorites
    # ------------------------------------------------------------------

    def update_status(self, kind, entity_id, status) -> bool:
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        target = parse_status(status)
        if target is None:
            logger.warning(f"Ignoring unknown status {status!r}")
            return False
        media_kind, _, entity = found
        if not is_legal_transition(entity.status, target):
            return False
        return self._commit(media_kind, entity.model_copy(update={"status": target}))

    def toggle_completed(self, kind, entity_id) -> bool:
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, _, entity = found
        return self._commit(media_kind, entity.model_copy(update={"status": toggle_completed(entity.status)}))

    def toggle_watching(self, kind, entity_id) -> bool:
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, _, entity = found
        return self._commit(media_kind, entity.model_copy(update={"status": toggle_watching(entity.status)}))

    def toggle_favorite(self, kind, entity_id) -> bool:
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, _, entity = found
        return self._commit(media_kind, entity.model_copy(update={"is_favorite": not entity.is_favorite}))

    # ------------------------------------------------------------------
    # Progress and metadata
    # ------------------------------------------------------------------

    def update_progress(self, kind, entity_id, **fields) -> bool:
        """Partially update progress counters; values are clamped to [0, total]."""
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, _, entity = found

        allowed = PROGRESS_FIELDS[media_kind]
        updates = {}
        for name, value in fields.items():
            if name not in allowed:
                logger.debug(f"Ignoring progress field {name!r} for {media_kind.value}")
                continue
            try:
                updates[name] = int(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Ignoring invalid progress value {name}={value!r}")
        if not updates:
            return False

        updated = self._revalidate(entity, updates)
        if updated is None:
            return False
        return self._commit(media_kind, updated)

    def update_metadata(self, kind, entity_id, **fields) -> bool:
        """Update descriptive fields (title, poster, runtimes, ...)."""
        found = self._lookup(kind, entity_id)
        if found is None:
            return False
        media_kind, _, entity = found

        allowed = METADATA_FIELDS[media_kind]
        updates = {name: value for name, value in fields.items() if name in allowed}
        if len(updates) != len(fields):
            logger.debug(f"Ignoring fields {sorted(set(fields) - allowed)} for {media_kind.value}")
        if not updates:
            return False

        updated = self._revalidate(entity, updates)
        if updated is None:
            return False
        return self._commit(media_kind, updated)

    def set_cached_date(self, kind, entity_id, date_field, value) -> bool:
        """Set a cached release date only if it is still empty.

        Returns whether the write happened. A value that is already set is
        never overwritten, so concurrent resolutions can land in any order.
        """
        media_kind = self._kind(kind)
        if media_kind is None:
            return False
        try:
            field = DateField(date_field)
        except ValueError:
            logger.warning(f"Unknown date field {date_field!r}")
            return False
        if DATE_FIELD_BY_KIND.get(media_kind) != field:
            logger.warning(f"{media_kind.value} has no {field.value} field")
            return False

        if isinstance(value, datetime):
            value = value.date()
        elif isinstance(value, str):
            try:
                value = date.fromisoformat(value)
            except ValueError:
                logger.warning(f"Ignoring unparsable date {value!r}")
                return False
        if not isinstance(value, date):
            return False

        found = self._lookup(media_kind, entity_id)
        if found is None:
            return False
        _, _, entity = found
        if getattr(entity, field.value) is not None:
            logger.debug(f"{media_kind.value} {entity.id} already has {field.value}, keeping it")
            return False

        logger.info(f"Cached {field.value}={value.isoformat()} for {media_kind.value} {entity.id}")
        return self._commit(media_kind, entity.model_copy(update={field.value: value}))

    # ------------------------------------------------------------------
    # Show episodes
    # ------------------------------------------------------------------

    def _show(self, show_id) -> Optional[TrackedShow]:
        found = self._lookup(MediaKind.SHOW, show_id)
        return found[2] if found else None

    def mark_episode_watched(
        self,
        show_id,
        season_number: int,
        episode_number: int,
        episode_id: int = -1,
        watched_at: Optional[datetime] = None,
    ) -> bool:
        """Record one watched episode. Duplicates are ignored; status is untouched."""
        show = self._show(show_id)
        if show is None:
            return False
        if any(e.key == (season_number, episode_number) for e in show.watched_episodes):
            return False

        episode = WatchedEpisode(
            season_number=season_number,
            episode_number=episode_number,
            episode_id=episode_id,
            watched_at=watched_at or utcnow(),
        )
        episodes = list(show.watched_episodes) + [episode]
        return self._commit(MediaKind.SHOW, show.model_copy(update={"watched_episodes": episodes}))

    def mark_episode_unwatched(self, show_id, season_number: int, episode_number: int) -> bool:
        show = self._show(show_id)
        if show is None:
            return False
        episodes = [e for e in show.watched_episodes if e.key != (season_number, episode_number)]
        if len(episodes) == len(show.watched_episodes):
            return False
        return self._commit(MediaKind.SHOW, show.model_copy(update={"watched_episodes": episodes}))

    def mark_season_watched(self, show_id, season_number: int, episodes: Iterable[tuple[int, int]]) -> int:
        """Mark (episode_number, episode_id) pairs of one season watched. Returns how many were new."""
        show = self._show(show_id)
        if show is None:
            return 0
        watched = {e.key for e in show.watched_episodes}
        timestamp = utcnow()
        new_episodes = []
        for episode_number, episode_id in episodes:
            if (season_number, episode_number) in watched:
                continue
            watched.add((season_number, episode_number))
            new_episodes.append(
                WatchedEpisode(
                    season_number=season_number,
                    episode_number=episode_number,
                    episode_id=episode_id,
                    watched_at=timestamp,
                )
            )
        if not new_episodes:
            return 0
        updated = show.model_copy(update={"watched_episodes": list(show.watched_episodes) + new_episodes})
        self._commit(MediaKind.SHOW, updated)
        return len(new_episodes)

    def mark_season_unwatched(self, show_id, season_number: int) -> int:
        """Forget every watched episode of one season. Returns how many were removed."""
        show = self._show(show_id)
        if show is None:
            return 0
        episodes = [e for e in show.watched_episodes if e.season_number != season_number]
        removed = len(show.watched_episodes) - len(episodes)
        if removed:
            self._commit(MediaKind.SHOW, show.model_copy(update={"watched_episodes": episodes}))
        return removed

    def mark_show_watched(self, show_id, seasons: Optional[list[SeasonInfo]] = None) -> int:
        """Mark every episode of every season watched.

        Uses the given seasons, or the ones cached on the show. Episode ids
        are unknown here and stored as -1. Returns how many were new.
        """
        show = self._show(show_id)
        if show is None:
            return 0
        seasons = seasons if seasons is not None else show.seasons
        watched = {e.key for e in show.watched_episodes}
        timestamp = utcnow()
        new_episodes = []
        for season in seasons:
            for episode_number in range(1, season.episode_count + 1):
                if (season.season_number, episode_number) in watched:
                    continue
                new_episodes.append(
                    WatchedEpisode(
                        season_number=season.season_number,
                        episode_number=episode_number,
                        watched_at=timestamp,
                    )
                )
        if not new_episodes:
            return 0
        updated = show.model_copy(update={"watched_episodes": list(show.watched_episodes) + new_episodes})
        self._commit(MediaKind.SHOW, updated)
        return len(new_episodes)

    def is_episode_watched(self, show_id, season_number: int, episode_number: int) -> bool:
        show = self._show(show_id)
        if show is None:
            return False
        return any(e.key == (season_number, episode_number) for e in show.watched_episodes)

    def watched_episode_count(self, show_id) -> int:
        show = self._show(show_id)
        return len(show.watched_episodes) if show else 0

    def season_progress(self, show_id, season_number: int, total_episodes: int) -> int:
        """Percentage (0-100) of a season's episodes watched."""
        show = self._show(show_id)
        if show is None or total_episodes <= 0:
            return 0
        watched = sum(1 for e in show.watched_episodes if e.season_number == season_number)
        return min(100, int(watched * 100 / total_episodes + 0.5))

    # ------------------------------------------------------------------
    # Movies
    # ------------------------------------------------------------------

    def _movie(self, movie_id) -> Optional[TrackedMovie]:
        found = self._lookup(MediaKind.MOVIE, movie_id)
        return found[2] if found else None

    def mark_movie_watched(self, movie_id, watched_at: Optional[datetime] = None) -> bool:
        movie = self._movie(movie_id)
        if movie is None:
            return False
        return self._commit(MediaKind.MOVIE, movie.model_copy(update={"watched_at": watched_at or utcnow()}))

    def mark_movie_unwatched(self, movie_id) -> bool:
        movie = self._movie(movie_id)
        if movie is None or movie.watched_at is None:
            return False
        return self._commit(MediaKind.MOVIE, movie.model_copy(update={"watched_at": None}))

    def is_movie_watched(self, movie_id) -> bool:
        movie = self._movie(movie_id)
        return movie is not None and movie.watched_at is not None
