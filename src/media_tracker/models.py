"""Data models for tracked media entries."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from .constants import STORE_SCHEMA_VERSION, DateField, MediaKind


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def clamp(value: int, total: int) -> int:
    """Clamp a progress counter to [0, total] (upper bound only when total > 0)."""
    value = max(0, value)
    if total > 0:
        value = min(value, total)
    return value


class TrackingStatus(str, Enum):
    """User-assigned consumption status."""

    WATCHING = "watching"
    COMPLETED = "completed"
    PLAN_TO_WATCH = "plan_to_watch"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"


class WatchedEpisode(BaseModel):
    """A single episode marked as watched."""

    season_number: int
    episode_number: int
    episode_id: int = -1
    watched_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[int, int]:
        return (self.season_number, self.episode_number)


class SeasonInfo(BaseModel):
    """Episode count of one season, used to mark a whole show watched."""

    season_number: int
    episode_count: int = Field(default=0, ge=0)


class TrackedEntityBase(BaseModel):
    """Attributes shared by every tracked media kind."""

    id: int
    title: str
    poster_url: Optional[str] = None
    added_at: datetime = Field(default_factory=utcnow)
    status: TrackingStatus = TrackingStatus.PLAN_TO_WATCH
    is_favorite: bool = False

    @property
    def media_kind(self) -> MediaKind:
        return MediaKind(self.kind)

    @property
    def key(self) -> tuple[MediaKind, Union[int, str]]:
        """Identity of the entity across the whole store."""
        return (self.media_kind, self.id)


class TrackedShow(TrackedEntityBase):
    """A tracked TV show."""

    kind: Literal["show"] = "show"
    watched_episodes: list[WatchedEpisode] = Field(default_factory=list)
    next_air_date: Optional[date] = None
    episode_run_time_minutes: list[int] = Field(default_factory=list)
    total_episodes: Optional[int] = None
    seasons: list[SeasonInfo] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _dedupe_episodes(self) -> "TrackedShow":
        seen = set()
        unique = []
        for episode in self.watched_episodes:
            if episode.key in seen:
                continue
            seen.add(episode.key)
            unique.append(episode)
        self.watched_episodes = unique
        return self


class TrackedMovie(TrackedEntityBase):
    """A tracked movie."""

    kind: Literal["movie"] = "movie"
    watched_at: Optional[datetime] = None
    release_date: Optional[date] = None
    runtime_minutes: Optional[int] = None
    genres: list[str] = Field(default_factory=list)


class TrackedManga(TrackedEntityBase):
    """A tracked manga series."""

    kind: Literal["manga"] = "manga"
    current_chapter: int = 0
    current_volume: int = 0
    total_chapters: int = 0  # 0 when unknown
    total_volumes: int = 0
    rating: Optional[float] = Field(None, ge=0, le=10)

    @model_validator(mode="after")
    def _clamp_progress(self) -> "TrackedManga":
        self.total_chapters = max(0, self.total_chapters)
        self.total_volumes = max(0, self.total_volumes)
        self.current_chapter = clamp(self.current_chapter, self.total_chapters)
        self.current_volume = clamp(self.current_volume, self.total_volumes)
        return self


class TrackedBook(TrackedEntityBase):
    """A tracked book."""

    kind: Literal["book"] = "book"
    id: str
    current_page: int = 0
    total_pages: int = 0  # 0 when unknown
    authors: list[str] = Field(default_factory=list)
    rating: Optional[float] = Field(None, ge=0, le=10)

    @model_validator(mode="after")
    def _clamp_progress(self) -> "TrackedBook":
        self.total_pages = max(0, self.total_pages)
        self.current_page = clamp(self.current_page, self.total_pages)
        return self


TrackedEntity = Annotated[
    Union[TrackedShow, TrackedMovie, TrackedManga, TrackedBook],
    Field(discriminator="kind"),
]

ENTITY_MODELS = {
    MediaKind.SHOW: TrackedShow,
    MediaKind.MOVIE: TrackedMovie,
    MediaKind.MANGA: TrackedManga,
    MediaKind.BOOK: TrackedBook,
}

# Progress fields accepted by EntityStore.update_progress, per kind
PROGRESS_FIELDS = {
    MediaKind.SHOW: frozenset(),
    MediaKind.MOVIE: frozenset(),
    MediaKind.MANGA: frozenset({"current_chapter", "current_volume", "total_chapters", "total_volumes"}),
    MediaKind.BOOK: frozenset({"current_page", "total_pages"}),
}

# Descriptive fields accepted by EntityStore.update_metadata, per kind
METADATA_FIELDS = {
    MediaKind.SHOW: frozenset({"title", "poster_url", "episode_run_time_minutes", "total_episodes", "seasons", "genres"}),
    MediaKind.MOVIE: frozenset({"title", "poster_url", "runtime_minutes", "genres"}),
    MediaKind.MANGA: frozenset({"title", "poster_url", "rating"}),
    MediaKind.BOOK: frozenset({"title", "poster_url", "authors", "rating"}),
}

_entity_adapter = TypeAdapter(TrackedEntity)


def parse_entity(data: dict) -> Union[TrackedShow, TrackedMovie, TrackedManga, TrackedBook]:
    """Build the right entity model from a dict carrying a ``kind`` key."""
    return _entity_adapter.validate_python(data)


class StoreSnapshot(BaseModel):
    """Full store contents; also the persisted document."""

    schema_version: int = STORE_SCHEMA_VERSION
    shows: list[TrackedShow] = Field(default_factory=list)
    movies: list[TrackedMovie] = Field(default_factory=list)
    mangas: list[TrackedManga] = Field(default_factory=list)
    books: list[TrackedBook] = Field(default_factory=list)

    def entities(self, kind: Optional[MediaKind] = None) -> list:
        """Return entities of one kind, or all of them in kind order."""
        if kind is not None:
            return list(getattr(self, SNAPSHOT_FIELDS[MediaKind(kind)]))
        result = []
        for field_name in SNAPSHOT_FIELDS.values():
            result.extend(getattr(self, field_name))
        return result


SNAPSHOT_FIELDS = {
    MediaKind.SHOW: "shows",
    MediaKind.MOVIE: "movies",
    MediaKind.MANGA: "mangas",
    MediaKind.BOOK: "books",
}


class ShowMinimal(BaseModel):
    """The only show detail the resolver consumes."""

    next_episode_air_date: Optional[date] = None


class MovieMinimal(BaseModel):
    """The only movie detail the resolver consumes."""

    release_date: Optional[date] = None


class CachedDateWrite(BaseModel):
    """Deferred write of a resolved date, applied after the current pass."""

    kind: MediaKind
    entity_id: Union[int, str]
    date_field: DateField
    value: date


class ResolveResult(BaseModel):
    """Result of a resolver pass."""

    success: bool = True
    attempted: int = 0
    resolved: int = 0
    no_date: int = 0
    failed: int = 0
    deduplicated: int = 0
    writes_applied: int = 0
    writes_skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class CalendarItem(BaseModel):
    """One row on the release calendar."""

    kind: MediaKind
    id: Union[int, str]
    title: str
    poster_url: Optional[str] = None
    release_date: date
