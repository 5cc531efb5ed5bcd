"""Release-date resolver: fills missing cached dates from a metadata provider."""

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Union

from .base_client import MetadataProvider
from .constants import DATE_FIELD_BY_KIND, MediaKind
from .models import CachedDateWrite, ResolveResult, StoreSnapshot, TrackingStatus
from .store import EntityStore

logger = logging.getLogger(__name__)

EntityKey = tuple[MediaKind, Union[int, str]]

# Statuses for which a missing date is still worth fetching
RELEVANT_STATUSES = {
    MediaKind.SHOW: frozenset({TrackingStatus.PLAN_TO_WATCH, TrackingStatus.WATCHING, TrackingStatus.COMPLETED}),
    MediaKind.MOVIE: frozenset({TrackingStatus.PLAN_TO_WATCH, TrackingStatus.WATCHING}),
}


class FetchOutcome(str, Enum):
    """Outcome of one provider request."""

    RESOLVED = "resolved"
    NO_DATE = "no_date"
    FAILED = "failed"


def needs_fetch(snapshot: StoreSnapshot) -> list:
    """Entities that are still status-relevant and have no cached date.

    An entity whose provider answered "no date" stays in this set and is
    asked again on every evaluation.
    """
    pending = []
    for kind, statuses in RELEVANT_STATUSES.items():
        date_field = DATE_FIELD_BY_KIND[kind].value
        for entity in snapshot.entities(kind):
            if entity.status in statuses and getattr(entity, date_field) is None:
                pending.append(entity)
    return pending


class ReleaseDateResolver:
    """Resolves and caches next-release dates, one request per (kind, id) at a time."""

    def __init__(self, store: EntityStore, provider: MetadataProvider):
        """Initialize resolver with the store it writes to and the provider it asks."""
        self.store = store
        self.provider = provider
        self._in_flight: dict[EntityKey, asyncio.Task] = {}
        self._pending_writes: deque[CachedDateWrite] = deque()
        # Write outcomes are kept only while a resolve() pass still has to count them
        self._write_outcomes: dict[EntityKey, bool] = {}
        self._outcome_readers: dict[EntityKey, int] = {}

    @property
    def in_flight(self) -> set[EntityKey]:
        """Keys with a provider request currently running."""
        return set(self._in_flight)

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    def needs_fetch(self) -> list:
        return needs_fetch(self.store.snapshot())

    def schedule(self) -> list[asyncio.Task]:
        """Start fetches for every entity missing a date without waiting for them.

        Must be called from a running event loop. Keys already in flight
        reuse the running task instead of issuing a second request.
        """
        scheduled, _ = self._schedule()
        return [task for _, task in scheduled]

    def _schedule(self, count_outcomes: bool = False) -> tuple[list[tuple[EntityKey, asyncio.Task]], int]:
        scheduled = []
        deduplicated = 0
        for entity in self.needs_fetch():
            key = entity.key
            if count_outcomes:
                self._outcome_readers[key] = self._outcome_readers.get(key, 0) + 1
            task = self._in_flight.get(key)
            if task is None:
                task = asyncio.create_task(self._fetch(*key))
                self._in_flight[key] = task
                task.add_done_callback(lambda done, key=key: self._forget(key, done))
            else:
                deduplicated += 1
                logger.debug(f"Request for {key[0].value} {key[1]} already in flight")
            scheduled.append((key, task))
        return scheduled, deduplicated

    def _forget(self, key: EntityKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    def _release_outcome(self, key: EntityKey) -> None:
        """Drop a counted write outcome once no running pass still needs it."""
        readers = self._outcome_readers.get(key, 0) - 1
        if readers > 0:
            self._outcome_readers[key] = readers
        else:
            self._outcome_readers.pop(key, None)
            self._write_outcomes.pop(key, None)

    async def _fetch(self, kind: MediaKind, entity_id) -> FetchOutcome:
        """Ask the provider for one date and queue the write if there is one."""
        try:
            if kind == MediaKind.SHOW:
                details = await self.provider.fetch_show_minimal(entity_id)
                value = details.next_episode_air_date
            else:
                details = await self.provider.fetch_movie_minimal(entity_id)
                value = details.release_date
        except Exception as e:
            logger.warning(f"Failed to fetch release date for {kind.value} {entity_id}: {e}")
            return FetchOutcome.FAILED

        if value is None:
            logger.debug(f"No upcoming date for {kind.value} {entity_id}")
            return FetchOutcome.NO_DATE

        self._pending_writes.append(
            CachedDateWrite(kind=kind, entity_id=entity_id, date_field=DATE_FIELD_BY_KIND[kind], value=value)
        )
        # Apply on the next loop tick, after the current pass has finished reading
        asyncio.get_running_loop().call_soon(self.apply_pending_writes)
        return FetchOutcome.RESOLVED

    def apply_pending_writes(self) -> tuple[int, int]:
        """Drain the write queue into the store. Returns (applied, skipped)."""
        applied = skipped = 0
        while self._pending_writes:
            write = self._pending_writes.popleft()
            written = self.store.set_cached_date(write.kind, write.entity_id, write.date_field, write.value)
            key = (write.kind, write.entity_id)
            if key in self._outcome_readers:
                self._write_outcomes[key] = written
            if written:
                applied += 1
            else:
                skipped += 1
        return applied, skipped

    async def resolve(self) -> ResolveResult:
        """Run one full pass: fetch every missing date and apply the results."""
        scheduled, deduplicated = self._schedule(count_outcomes=True)
        result = ResolveResult(attempted=len(scheduled), deduplicated=deduplicated)
        if not scheduled:
            logger.info("No release dates to resolve")
            return result

        logger.info(f"Resolving release dates for {len(scheduled)} entries")
        outcomes = await asyncio.gather(*(task for _, task in scheduled), return_exceptions=True)
        self.apply_pending_writes()

        for (key, _), outcome in zip(scheduled, outcomes):
            kind, entity_id = key
            if outcome == FetchOutcome.RESOLVED:
                result.resolved += 1
                if self._write_outcomes.get(key):
                    result.writes_applied += 1
                else:
                    result.writes_skipped += 1
            elif outcome == FetchOutcome.NO_DATE:
                result.no_date += 1
            else:
                result.failed += 1
                result.errors.append(f"{kind.value} {entity_id}: fetch failed")
            self._release_outcome(key)

        result.success = result.failed == 0
        logger.info(
            f"Summary: attempted={result.attempted}, resolved={result.resolved}, "
            f"no_date={result.no_date}, failed={result.failed}, "
            f"deduplicated={result.deduplicated}, writes_applied={result.writes_applied}, "
            f"writes_skipped={result.writes_skipped}"
        )
        return result
