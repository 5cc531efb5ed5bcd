"""Tests for the release-date resolver."""

import asyncio
from datetime import date

import pytest

from media_tracker.base_client import MetadataProvider
from media_tracker.constants import MediaKind
from media_tracker.models import MovieMinimal, ShowMinimal, TrackedManga, TrackedMovie, TrackedShow, TrackingStatus
from media_tracker.release_calendar import build_calendar, items_on
from media_tracker.resolver import ReleaseDateResolver, needs_fetch


class FakeProvider(MetadataProvider):
    """Provider answering from dicts, optionally waiting on an event first."""

    def __init__(self, shows=None, movies=None, gate=None, failing=()):
        self.shows = shows or {}
        self.movies = movies or {}
        self.gate = gate
        self.failing = set(failing)
        self.calls = []

    async def _answer(self, key):
        self.calls.append(key)
        if self.gate is not None:
            await self.gate.wait()
        if key in self.failing:
            raise ConnectionError("TMDB unreachable")

    async def fetch_show_minimal(self, show_id):
        await self._answer(("show", show_id))
        return ShowMinimal(next_episode_air_date=self.shows.get(show_id))

    async def fetch_movie_minimal(self, movie_id):
        await self._answer(("movie", movie_id))
        return MovieMinimal(release_date=self.movies.get(movie_id))


def test_needs_fetch_follows_status_and_date(store):
    store.add(TrackedShow(id=1, title="Completed show", status=TrackingStatus.COMPLETED))
    store.add(TrackedShow(id=2, title="Dropped show", status=TrackingStatus.DROPPED))
    store.add(TrackedShow(id=3, title="Dated show", next_air_date=date(2024, 1, 1)))
    store.add(TrackedMovie(id=4, title="Watching movie", status=TrackingStatus.WATCHING))
    store.add(TrackedMovie(id=5, title="Completed movie", status=TrackingStatus.COMPLETED))
    store.add(TrackedManga(id=6, title="Manga"))

    pending = needs_fetch(store.snapshot())
    assert [e.key for e in pending] == [(MediaKind.SHOW, 1), (MediaKind.MOVIE, 4)]


@pytest.mark.asyncio
async def test_resolved_show_appears_on_calendar(store):
    """Show 42 resolves to 2024-05-01 and lands on that calendar day."""
    store.add(TrackedShow(id=42, title="Severance", status=TrackingStatus.WATCHING))
    provider = FakeProvider(shows={42: date(2024, 5, 1)})
    resolver = ReleaseDateResolver(store, provider)

    result = await resolver.resolve()

    assert result.success
    assert result.resolved == 1
    assert result.writes_applied == 1
    assert store.get("show", 42).next_air_date == date(2024, 5, 1)
    items = items_on(build_calendar(store.snapshot()), "2024-05-01")
    assert [(item.kind, item.id) for item in items] == [(MediaKind.SHOW, 42)]
    assert resolver.needs_fetch() == []


@pytest.mark.asyncio
async def test_movie_without_date_is_asked_again(store):
    """Movie 7 resolving to null keeps needing a fetch."""
    store.add(TrackedMovie(id=7, title="Untitled"))
    provider = FakeProvider()
    resolver = ReleaseDateResolver(store, provider)

    result = await resolver.resolve()
    assert result.no_date == 1
    assert store.get("movie", 7).release_date is None
    assert [e.id for e in resolver.needs_fetch()] == [7]

    await resolver.resolve()
    assert provider.calls == [("movie", 7), ("movie", 7)]


@pytest.mark.asyncio
async def test_removal_during_fetch_does_not_recreate(store):
    """Removing show 42 while its fetch is in flight leaves it removed."""
    store.add(TrackedShow(id=42, title="Severance"))
    gate = asyncio.Event()
    resolver = ReleaseDateResolver(store, FakeProvider(shows={42: date(2024, 5, 1)}, gate=gate))

    pass_task = asyncio.create_task(resolver.resolve())
    await asyncio.sleep(0)
    assert resolver.in_flight == {(MediaKind.SHOW, 42)}

    store.remove("show", 42)
    gate.set()
    result = await pass_task

    assert result.resolved == 1
    assert result.writes_skipped == 1
    assert not store.is_tracked("show", 42)
    assert store.count() == 0
    assert resolver.in_flight == set()


@pytest.mark.asyncio
async def test_in_flight_requests_are_deduplicated(store):
    store.add(TrackedShow(id=42, title="Severance"))
    gate = asyncio.Event()
    provider = FakeProvider(shows={42: date(2024, 5, 1)}, gate=gate)
    resolver = ReleaseDateResolver(store, provider)

    first = resolver.schedule()
    second = resolver.schedule()
    assert first == second
    assert len(first) == 1

    gate.set()
    await asyncio.gather(*first)
    resolver.apply_pending_writes()

    assert provider.calls == [("show", 42)]
    assert store.get("show", 42).next_air_date == date(2024, 5, 1)


@pytest.mark.asyncio
async def test_failed_fetch_is_retried_next_pass(store):
    store.add(TrackedShow(id=1, title="Unreachable"))
    store.add(TrackedMovie(id=2, title="Reachable"))
    provider = FakeProvider(movies={2: date(2025, 12, 19)}, failing={("show", 1)})
    resolver = ReleaseDateResolver(store, provider)

    result = await resolver.resolve()

    assert result.success is False
    assert result.failed == 1
    assert result.resolved == 1
    assert result.errors == ["show 1: fetch failed"]
    assert store.get("movie", 2).release_date == date(2025, 12, 19)
    assert [e.id for e in resolver.needs_fetch()] == [1]


@pytest.mark.asyncio
async def test_existing_date_is_not_overwritten(store):
    store.add(TrackedShow(id=42, title="Severance"))
    gate = asyncio.Event()
    resolver = ReleaseDateResolver(store, FakeProvider(shows={42: date(2024, 6, 1)}, gate=gate))

    pass_task = asyncio.create_task(resolver.resolve())
    await asyncio.sleep(0)
    store.set_cached_date("show", 42, "next_air_date", date(2024, 5, 1))
    gate.set()
    result = await pass_task

    assert (result.writes_applied, result.writes_skipped) == (0, 1)
    assert resolver.pending_writes == 0
    assert store.get("show", 42).next_air_date == date(2024, 5, 1)


@pytest.mark.asyncio
async def test_nothing_to_resolve(store):
    provider = FakeProvider()
    result = await ReleaseDateResolver(store, provider).resolve()
    assert result.attempted == 0
    assert result.success
    assert provider.calls == []


@pytest.mark.asyncio
async def test_write_outcomes_are_released_after_counting(store):
    store.add(TrackedShow(id=42, title="Severance"))
    store.add(TrackedMovie(id=7, title="Untitled"))
    resolver = ReleaseDateResolver(store, FakeProvider(shows={42: date(2024, 5, 1)}))

    await resolver.resolve()
    store.remove("show", 42)

    assert resolver._write_outcomes == {}
    assert resolver._outcome_readers == {}


@pytest.mark.asyncio
async def test_concurrent_passes_share_one_request(store):
    store.add(TrackedShow(id=42, title="Severance"))
    gate = asyncio.Event()
    provider = FakeProvider(shows={42: date(2024, 5, 1)}, gate=gate)
    resolver = ReleaseDateResolver(store, provider)

    first = asyncio.create_task(resolver.resolve())
    second = asyncio.create_task(resolver.resolve())
    await asyncio.sleep(0)
    gate.set()
    first_result, second_result = await asyncio.gather(first, second)

    assert provider.calls == [("show", 42)]
    assert second_result.deduplicated == 1
    assert first_result.writes_applied == 1
    assert second_result.writes_applied == 1
    assert resolver._write_outcomes == {}
