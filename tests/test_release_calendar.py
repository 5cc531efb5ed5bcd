"""Tests for the release calendar."""

from datetime import date

from media_tracker.constants import MediaKind
from media_tracker.models import StoreSnapshot, TrackedMovie, TrackedShow, TrackingStatus
from media_tracker.release_calendar import build_calendar, items_on, mark_days


def _snapshot():
    return StoreSnapshot(
        shows=[
            TrackedShow(id=1, title="Later show", next_air_date=date(2024, 6, 1)),
            TrackedShow(id=2, title="Same day show", next_air_date=date(2024, 5, 1), status=TrackingStatus.COMPLETED),
            TrackedShow(id=3, title="Dropped show", next_air_date=date(2024, 5, 1), status=TrackingStatus.DROPPED),
            TrackedShow(id=4, title="Undated show"),
        ],
        movies=[
            TrackedMovie(id=7, title="Movie", release_date=date(2024, 5, 1)),
            TrackedMovie(id=8, title="Watching movie", release_date=date(2024, 5, 1), status=TrackingStatus.WATCHING),
        ],
    )


def test_days_sorted_and_filtered():
    calendar = build_calendar(_snapshot())
    assert list(calendar) == ["2024-05-01", "2024-06-01"]


def test_shows_before_movies_within_a_day():
    items = items_on(build_calendar(_snapshot()), date(2024, 5, 1))
    assert [(item.kind, item.id) for item in items] == [(MediaKind.SHOW, 2), (MediaKind.MOVIE, 7)]
    assert items[0].release_date == date(2024, 5, 1)


def test_mark_days():
    marks = mark_days(build_calendar(_snapshot()))
    assert marks == {
        "2024-05-01": frozenset({"show", "movie"}),
        "2024-06-01": frozenset({"show"}),
    }


def test_empty_day():
    assert items_on(build_calendar(_snapshot()), "2030-01-01") == []
    assert build_calendar(StoreSnapshot()) == {}


def test_calendar_is_pure():
    snapshot = _snapshot()
    before = snapshot.model_dump()
    assert build_calendar(snapshot) == build_calendar(snapshot)
    assert snapshot.model_dump() == before
