"""Library statistics computed from a store snapshot."""

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_EPISODE_RUNTIME_MINUTES,
    DEFAULT_MOVIE_RUNTIME_MINUTES,
    TOP_SHOWS_LIMIT,
    MediaKind,
)
from .models import StoreSnapshot, TrackingStatus


class KindStatistics(BaseModel):
    """Counts for one media kind."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    minutes_spent: int = 0


class ShowProgress(BaseModel):
    title: str
    watched_episodes: int


class LibraryStatistics(BaseModel):
    """Statistics across the whole library."""

    shows: KindStatistics = Field(default_factory=KindStatistics)
    movies: KindStatistics = Field(default_factory=KindStatistics)
    mangas: KindStatistics = Field(default_factory=KindStatistics)
    books: KindStatistics = Field(default_factory=KindStatistics)
    total_watched_episodes: int = 0
    top_shows: list[ShowProgress] = Field(default_factory=list)
    chapters_read: int = 0
    pages_read: int = 0


def _count_by_status(entities) -> dict[str, int]:
    counts = {status.value: 0 for status in TrackingStatus}
    for entity in entities:
        counts[entity.status.value] += 1
    return counts


def _show_minutes(show) -> float:
    runtimes = show.episode_run_time_minutes
    average = sum(runtimes) / len(runtimes) if runtimes else DEFAULT_EPISODE_RUNTIME_MINUTES
    return len(show.watched_episodes) * average


def _movie_counts_as_watched(movie) -> bool:
    return movie.status in (TrackingStatus.COMPLETED, TrackingStatus.WATCHING) or movie.watched_at is not None


def compute_statistics(snapshot: StoreSnapshot) -> LibraryStatistics:
    """Summarise time spent and status distribution per media kind."""
    shows = snapshot.entities(MediaKind.SHOW)
    movies = snapshot.entities(MediaKind.MOVIE)
    mangas = snapshot.entities(MediaKind.MANGA)
    books = snapshot.entities(MediaKind.BOOK)

    show_minutes = sum(_show_minutes(show) for show in shows)
    movie_minutes = sum(
        movie.runtime_minutes or DEFAULT_MOVIE_RUNTIME_MINUTES for movie in movies if _movie_counts_as_watched(movie)
    )

    ranked = sorted(shows, key=lambda show: len(show.watched_episodes), reverse=True)
    top_shows = [
        ShowProgress(title=show.title, watched_episodes=len(show.watched_episodes))
        for show in ranked[:TOP_SHOWS_LIMIT]
    ]

    return LibraryStatistics(
        shows=KindStatistics(total=len(shows), by_status=_count_by_status(shows), minutes_spent=round(show_minutes)),
        movies=KindStatistics(total=len(movies), by_status=_count_by_status(movies), minutes_spent=movie_minutes),
        mangas=KindStatistics(total=len(mangas), by_status=_count_by_status(mangas)),
        books=KindStatistics(total=len(books), by_status=_count_by_status(books)),
        total_watched_episodes=sum(len(show.watched_episodes) for show in shows),
        top_shows=top_shows,
        chapters_read=sum(manga.current_chapter for manga in mangas),
        pages_read=sum(book.current_page for book in books),
    )


def format_minutes(minutes: int) -> str:
    """Render a duration as "2d 3h 15m", dropping leading zero parts."""
    days, remainder = divmod(int(minutes), 24 * 60)
    hours, mins = divmod(remainder, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins or not parts:
        parts.append(f"{mins}m")
    return " ".join(parts)
