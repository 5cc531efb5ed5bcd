"""Status transition rules for tracked entries.

Status is a free-form user annotation: every status may move to every other
status. The two toggles below are the only places where a policy decides the
target status.
"""

from typing import Optional

from .models import TrackingStatus

TRANSITIONS: dict[TrackingStatus, frozenset[TrackingStatus]] = {
    status: frozenset(TrackingStatus) for status in TrackingStatus
}


def parse_status(value) -> Optional[TrackingStatus]:
    """Coerce a status value, returning None when it is not a known status."""
    if isinstance(value, TrackingStatus):
        return value
    try:
        return TrackingStatus(value)
    except ValueError:
        return None


def is_legal_transition(current: TrackingStatus, target: TrackingStatus) -> bool:
    """Check whether ``current`` may move to ``target``."""
    return target in TRANSITIONS.get(current, frozenset())


def toggle_completed(current: TrackingStatus) -> TrackingStatus:
    """Flip between completed and plan_to_watch."""
    if current == TrackingStatus.COMPLETED:
        return TrackingStatus.PLAN_TO_WATCH
    return TrackingStatus.COMPLETED


def toggle_watching(current: TrackingStatus) -> TrackingStatus:
    """Flip between watching and plan_to_watch."""
    if current == TrackingStatus.WATCHING:
        return TrackingStatus.PLAN_TO_WATCH
    return TrackingStatus.WATCHING
