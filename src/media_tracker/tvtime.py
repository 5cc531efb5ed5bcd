"""Import of a TV Time JSON export, matched against TMDB."""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests
from pydantic import BaseModel, Field, ValidationError, field_validator

from .backup import BackupError
from .constants import MediaKind
from .models import StoreSnapshot, TrackedMovie, TrackedShow, TrackingStatus, WatchedEpisode, utcnow
from .store import EntityStore
from .tmdb_client import poster_url

logger = logging.getLogger(__name__)

# TV Time status -> our status; anything else counts as watching
TVTIME_STATUS_MAP = {
    "up_to_date": TrackingStatus.WATCHING,
    "watch_later": TrackingStatus.PLAN_TO_WATCH,
    "stopped": TrackingStatus.DROPPED,
    "finished": TrackingStatus.COMPLETED,
}

# Pause after every Nth lookup to stay under the TMDB rate limit
RATE_LIMIT_EVERY = 5


def _lenient_datetime(value):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparsable TV Time date: {value!r}")
        return None


class TVTimeIds(BaseModel):
    tvdb: Optional[int] = None
    imdb: Optional[str] = None


class TVTimeEpisode(BaseModel):
    id: TVTimeIds = Field(default_factory=TVTimeIds)
    number: int
    special: bool = False
    is_watched: bool = False
    watched_at: Optional[datetime] = None

    @field_validator("watched_at", mode="before")
    @classmethod
    def _parse_watched_at(cls, value):
        return _lenient_datetime(value)


class TVTimeSeason(BaseModel):
    number: int
    episodes: list[TVTimeEpisode] = Field(default_factory=list)


class TVTimeItem(BaseModel):
    """One show or movie from a TV Time export."""

    uuid: Optional[str] = None
    id: TVTimeIds = Field(default_factory=TVTimeIds)
    title: str
    created_at: Optional[datetime] = None
    watched_at: Optional[datetime] = None
    is_watched: bool = False
    seasons: Optional[list[TVTimeSeason]] = None
    status: Optional[str] = None

    @field_validator("created_at", "watched_at", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        return _lenient_datetime(value)

    @property
    def is_movie(self) -> bool:
        return not self.seasons


class TMDBMatch(BaseModel):
    id: int
    poster_path: Optional[str] = None


class TVTimeImportResult(BaseModel):
    """Outcome of a TV Time import."""

    shows: int = 0
    movies: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)


def map_tvtime_status(status: Optional[str]) -> TrackingStatus:
    return TVTIME_STATUS_MAP.get(status or "", TrackingStatus.WATCHING)


def _match_from_find(data: dict) -> Optional[TMDBMatch]:
    for bucket in ("movie_results", "tv_results", "tv_episode_results"):
        results = data.get(bucket) or []
        if results:
            return TMDBMatch.model_validate(results[0])
    return None


def find_tmdb_id(client, item: TVTimeItem) -> Optional[TMDBMatch]:
    """Find the TMDB entry for a TV Time item.

    Tries the IMDB id, then the TVDB id, then a title search restricted to the
    item's media type. Lookup errors count as no match.
    """
    media_type = "movie" if item.is_movie else "tv"
    try:
        if item.id.imdb and item.id.imdb != "-1":
            match = _match_from_find(client.find_by_external_id(item.id.imdb, "imdb_id"))
            if match is not None:
                return match

        if item.id.tvdb and item.id.tvdb > 0:
            match = _match_from_find(client.find_by_external_id(item.id.tvdb, "tvdb_id"))
            if match is not None:
                return match

        for result in client.search_multi(item.title).get("results") or []:
            if result.get("media_type") == media_type:
                return TMDBMatch.model_validate(result)
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Failed to find TMDB id for {item.title!r}: {e}")
    return None


def _build_movie(item: TVTimeItem, match: TMDBMatch) -> TrackedMovie:
    now = utcnow()
    return TrackedMovie(
        id=match.id,
        title=item.title,
        poster_url=poster_url(match.poster_path),
        added_at=item.created_at or now,
        watched_at=(item.watched_at or now) if item.is_watched else None,
        status=TrackingStatus.COMPLETED if item.is_watched else TrackingStatus.PLAN_TO_WATCH,
    )


def _build_show(item: TVTimeItem, match: TMDBMatch) -> TrackedShow:
    now = utcnow()
    watched = []
    for season in item.seasons or []:
        for episode in season.episodes:
            if episode.is_watched and not episode.special:
                watched.append(WatchedEpisode(
                    season_number=season.number,
                    episode_number=episode.number,
                    episode_id=episode.id.tvdb if episode.id.tvdb is not None else -1,
                    watched_at=episode.watched_at or now,
                ))
    return TrackedShow(
        id=match.id,
        title=item.title,
        poster_url=poster_url(match.poster_path),
        added_at=item.created_at or now,
        status=map_tvtime_status(item.status),
        watched_episodes=watched,
    )


def read_tvtime_export(path: Path) -> list[TVTimeItem]:
    """Load a TV Time export file. Entries that do not validate are dropped."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BackupError(f"Cannot read TV Time export {path}: {e}") from e

    if not isinstance(raw, list):
        raise BackupError(f"{path} is not a TV Time export (expected a list of items)")

    items = []
    for index, entry in enumerate(raw):
        try:
            items.append(TVTimeItem.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid TV Time entry #{index}: {e.error_count()} errors")
    return items


def import_tvtime(store: EntityStore, path: Path, client, delay_seconds: float = 0.2) -> TVTimeImportResult:
    """Import a TV Time export into the store.

    Items already tracked are left untouched. ``client`` needs
    ``find_by_external_id`` and ``search_multi`` (see TMDBClient).
    """
    items = read_tvtime_export(path)
    logger.info(f"Importing {len(items)} TV Time entries from {path}")

    result = TVTimeImportResult()
    snapshot = StoreSnapshot()
    seen = set()

    for index, item in enumerate(items):
        match = find_tmdb_id(client, item)
        if match is None:
            result.failed.append(item.title)
        else:
            kind = MediaKind.MOVIE if item.is_movie else MediaKind.SHOW
            if store.is_tracked(kind, match.id) or (kind, match.id) in seen:
                result.skipped += 1
            elif kind == MediaKind.MOVIE:
                snapshot.movies.append(_build_movie(item, match))
                result.movies += 1
            else:
                snapshot.shows.append(_build_show(item, match))
                result.shows += 1
            seen.add((kind, match.id))

        if delay_seconds and index % RATE_LIMIT_EVERY == 0:
            time.sleep(delay_seconds)

    store.merge(snapshot)
    logger.info(
        f"TV Time import: {result.shows} shows, {result.movies} movies, "
        f"{result.skipped} already tracked, {len(result.failed)} not found"
    )
    return result
