"""Release calendar derived purely from a store snapshot.

Nothing here performs I/O or keeps state: the same snapshot always yields the
same calendar. Show items carry no season/episode numbers, since those would
need another detail request per show.
"""

from datetime import date
from typing import Union

from .constants import DATE_FIELD_BY_KIND, MediaKind
from .models import CalendarItem, StoreSnapshot, TrackingStatus

CALENDAR_STATUSES = {
    MediaKind.SHOW: frozenset({TrackingStatus.PLAN_TO_WATCH, TrackingStatus.WATCHING, TrackingStatus.COMPLETED}),
    MediaKind.MOVIE: frozenset({TrackingStatus.PLAN_TO_WATCH}),
}


def build_calendar(snapshot: StoreSnapshot) -> dict[str, list[CalendarItem]]:
    """Group upcoming shows and movies by ISO release date.

    Shows come before movies within a day; each kind keeps store order.
    Days are returned in chronological order.
    """
    days: dict[str, list[CalendarItem]] = {}
    for kind, statuses in CALENDAR_STATUSES.items():
        attribute = DATE_FIELD_BY_KIND[kind].value
        for entity in snapshot.entities(kind):
            release_date = getattr(entity, attribute)
            if release_date is None or entity.status not in statuses:
                continue
            days.setdefault(release_date.isoformat(), []).append(
                CalendarItem(
                    kind=kind,
                    id=entity.id,
                    title=entity.title,
                    poster_url=entity.poster_url,
                    release_date=release_date,
                )
            )
    return {day: days[day] for day in sorted(days)}


def mark_days(calendar: dict[str, list[CalendarItem]]) -> dict[str, frozenset[str]]:
    """Categories present on each day: "show", "movie", or both."""
    return {day: frozenset(item.kind.value for item in items) for day, items in calendar.items()}


def items_on(calendar: dict[str, list[CalendarItem]], day: Union[date, str]) -> list[CalendarItem]:
    """Items releasing on one day (empty list when none)."""
    key = day.isoformat() if isinstance(day, date) else day
    return list(calendar.get(key, []))
