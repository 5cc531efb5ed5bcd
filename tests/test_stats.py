"""Tests for library statistics."""

from datetime import datetime, timezone

from media_tracker.models import (
    StoreSnapshot,
    TrackedBook,
    TrackedManga,
    TrackedMovie,
    TrackedShow,
    TrackingStatus,
    WatchedEpisode,
)
from media_tracker.stats import compute_statistics, format_minutes


def _episodes(count):
    return [WatchedEpisode(season_number=1, episode_number=n) for n in range(1, count + 1)]


def test_statistics_totals():
    snapshot = StoreSnapshot(
        shows=[
            TrackedShow(id=1, title="Short", watched_episodes=_episodes(4), episode_run_time_minutes=[20, 30]),
            TrackedShow(id=2, title="Unknown runtime", watched_episodes=_episodes(2), status=TrackingStatus.WATCHING),
        ],
        movies=[
            TrackedMovie(id=3, title="Completed", runtime_minutes=100, status=TrackingStatus.COMPLETED),
            TrackedMovie(id=4, title="Seen", watched_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
            TrackedMovie(id=5, title="Planned", runtime_minutes=90),
        ],
        mangas=[TrackedManga(id=6, title="Manga", current_chapter=12, total_chapters=20)],
        books=[TrackedBook(id="b", title="Book", current_page=150, total_pages=300)],
    )

    stats = compute_statistics(snapshot)

    assert stats.shows.total == 2
    assert stats.shows.by_status["watching"] == 1
    assert stats.shows.by_status["plan_to_watch"] == 1
    assert stats.shows.minutes_spent == 4 * 25 + 2 * 45
    assert stats.movies.minutes_spent == 100 + 120
    assert stats.total_watched_episodes == 6
    assert [s.title for s in stats.top_shows] == ["Short", "Unknown runtime"]
    assert stats.chapters_read == 12
    assert stats.pages_read == 150


def test_top_shows_limited_to_five():
    shows = [TrackedShow(id=n, title=f"Show {n}", watched_episodes=_episodes(n)) for n in range(1, 8)]
    stats = compute_statistics(StoreSnapshot(shows=shows))
    assert [s.watched_episodes for s in stats.top_shows] == [7, 6, 5, 4, 3]


def test_empty_library():
    stats = compute_statistics(StoreSnapshot())
    assert stats.shows.total == 0
    assert stats.top_shows == []


def test_format_minutes():
    assert format_minutes(0) == "0m"
    assert format_minutes(45) == "45m"
    assert format_minutes(60) == "1h"
    assert format_minutes(3075) == "2d 3h 15m"
