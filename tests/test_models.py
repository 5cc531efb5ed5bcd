"""Unit tests for data models."""

from datetime import date

import pytest
from pydantic import ValidationError

from media_tracker.constants import MediaKind
from media_tracker.models import (
    StoreSnapshot,
    TrackedBook,
    TrackedManga,
    TrackedMovie,
    TrackedShow,
    TrackingStatus,
    WatchedEpisode,
    clamp,
    parse_entity,
)


def test_show_creation():
    """Test creating a show entry."""
    show = TrackedShow(id=42, title="Severance", status=TrackingStatus.WATCHING)

    assert show.id == 42
    assert show.kind == "show"
    assert show.media_kind == MediaKind.SHOW
    assert show.key == (MediaKind.SHOW, 42)
    assert show.status == TrackingStatus.WATCHING
    assert show.is_favorite is False
    assert show.next_air_date is None


def test_new_entry_defaults_to_plan_to_watch():
    movie = TrackedMovie(id=7, title="Dune")
    assert movie.status == TrackingStatus.PLAN_TO_WATCH


def test_duplicate_episodes_are_collapsed():
    """Test that a show never holds the same (season, episode) twice."""
    show = TrackedShow(
        id=1,
        title="Test",
        watched_episodes=[
            WatchedEpisode(season_number=1, episode_number=1, episode_id=10),
            WatchedEpisode(season_number=1, episode_number=1, episode_id=11),
            WatchedEpisode(season_number=1, episode_number=2),
        ],
    )
    assert [e.key for e in show.watched_episodes] == [(1, 1), (1, 2)]
    assert show.watched_episodes[0].episode_id == 10


def test_manga_progress_clamped():
    """Test clamping of chapters and volumes to their totals."""
    manga = TrackedManga(id=1, title="Test", current_chapter=150, total_chapters=100, current_volume=-3)
    assert manga.current_chapter == 100
    assert manga.current_volume == 0


def test_unknown_total_only_clamps_below():
    book = TrackedBook(id="b1", title="Test", current_page=500)
    assert book.current_page == 500
    assert clamp(-1, 0) == 0
    assert clamp(12, 10) == 10


def test_rating_validation():
    """Test rating bounds (0-10)."""
    assert TrackedManga(id=1, title="Test", rating=8.5).rating == 8.5

    with pytest.raises(ValidationError):
        TrackedManga(id=1, title="Test", rating=-1)


def test_parse_entity_uses_kind():
    entity = parse_entity({"kind": "movie", "id": 7, "title": "Dune", "release_date": "2024-03-01"})
    assert isinstance(entity, TrackedMovie)
    assert entity.release_date == date(2024, 3, 1)

    with pytest.raises(ValidationError):
        parse_entity({"kind": "podcast", "id": 1, "title": "?"})


def test_snapshot_entities_in_kind_order():
    snapshot = StoreSnapshot(
        books=[TrackedBook(id="b", title="Book")],
        shows=[TrackedShow(id=1, title="Show")],
    )
    assert [e.kind for e in snapshot.entities()] == ["show", "book"]
    assert snapshot.entities(MediaKind.MOVIE) == []
