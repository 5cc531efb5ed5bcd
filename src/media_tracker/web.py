"""
JSON web API for media-tracker.
Exposes the watchlist, calendar and statistics, and runs release date
resolution in the background.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from .constants import HTTP_CONFLICT, HTTP_NOT_FOUND, MediaKind
from .models import ENTITY_MODELS, PROGRESS_FIELDS, TrackingStatus
from .release_calendar import build_calendar, items_on
from .stats import compute_statistics
from .tracker_service import Tracker, build_tracker, execute_resolve

logger = logging.getLogger(__name__)

# Global state for resolver status
resolve_status = {
    "running": False,
    "last_resolve": None,
    "next_resolve": None,
    "last_result": None,
    "total_resolves": 0,
}

_tracker: Optional[Tracker] = None
_interval_minutes: Optional[int] = None
_resolve_task: Optional[asyncio.Task] = None


class ResolveStatus(BaseModel):
    """Resolver status response model"""
    running: bool
    last_resolve: Optional[str] = None
    next_resolve: Optional[str] = None
    last_result: Optional[str] = None
    total_resolves: int
    resolve_in_progress: bool = False
    tracked_entries: int = 0


class StatusUpdate(BaseModel):
    status: TrackingStatus


class ProgressUpdate(BaseModel):
    """Partial progress update; omitted fields are left unchanged."""
    current_chapter: Optional[int] = None
    total_chapters: Optional[int] = None
    current_volume: Optional[int] = None
    total_volumes: Optional[int] = None
    current_page: Optional[int] = None
    total_pages: Optional[int] = None


def configure(tracker: Tracker, interval_minutes: Optional[int] = None):
    """Set the tracker served by the API (called from CLI before uvicorn starts)."""
    global _tracker, _interval_minutes
    _tracker = tracker
    _interval_minutes = interval_minutes


def get_tracker() -> Tracker:
    """Return the configured tracker, building one from settings on first use."""
    global _tracker
    if _tracker is None:
        _tracker = build_tracker()
    return _tracker


def is_resolve_running() -> bool:
    """Check if any resolve (scheduled or manual) is currently running"""
    return _resolve_task is not None and not _resolve_task.done()


def update_resolve_status(running: bool = None, last_resolve: str = None,
                          next_resolve: str = None, last_result: str = None):
    """Update the global resolver status"""
    if running is not None:
        resolve_status["running"] = running
    if last_resolve:
        resolve_status["last_resolve"] = last_resolve
    if next_resolve:
        resolve_status["next_resolve"] = next_resolve
    if last_result:
        resolve_status["last_result"] = last_result
        resolve_status["total_resolves"] += 1


async def _run_resolve(trigger: str):
    """Run one resolver pass and record its outcome."""
    logger.info(f"[INFO] {trigger} release date check started")
    try:
        success, result = await execute_resolve(get_tracker())
        if success and result:
            result_msg = (
                f"{result.resolved}/{result.attempted} resolved, "
                f"{result.no_date} without date, {result.failed} failed ({trigger})"
            )
            if result.success:
                logger.info(f"[INFO] {trigger} release date check completed: {result_msg}")
            else:
                logger.warning(f"[WARNING] {trigger} release date check completed: {result_msg}")
        else:
            result_msg = f"Failed ({trigger})"
            logger.error(f"[ERROR] {trigger} release date check failed: could not run resolver")
    except Exception as e:
        result_msg = f"Error: {e} ({trigger})"
        logger.exception(f"[ERROR] {trigger} release date check failed")
    update_resolve_status(last_resolve=time.strftime('%Y-%m-%d %H:%M:%S %Z'), last_result=result_msg)


def _start_resolve(trigger: str) -> bool:
    """Start a resolve task unless one is running. Returns True if started."""
    global _resolve_task
    if is_resolve_running():
        return False
    _resolve_task = asyncio.create_task(_run_resolve(trigger))
    return True


async def _periodic_resolve(interval_minutes: int):
    """Run the resolver every interval_minutes until cancelled."""
    while True:
        if not _start_resolve("Scheduled"):
            logger.info("Skipping scheduled release date check: one is already running")
        next_time = time.time() + interval_minutes * 60
        update_resolve_status(next_resolve=time.strftime('%Y-%m-%d %H:%M:%S %Z', time.localtime(next_time)))
        await asyncio.sleep(interval_minutes * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the periodic resolver when an interval is configured."""
    periodic = None
    if _interval_minutes:
        update_resolve_status(running=True)
        periodic = asyncio.create_task(_periodic_resolve(_interval_minutes))
    yield
    if periodic is not None:
        periodic.cancel()
        update_resolve_status(running=False)


app = FastAPI(title="media-tracker", version="0.1.0", lifespan=lifespan)


def _require(kind: MediaKind, entity_id: str):
    entity = get_tracker().store.get(kind, entity_id)
    if entity is None:
        raise HTTPException(status_code=HTTP_NOT_FOUND, detail=f"{kind.value} {entity_id} is not tracked")
    return entity


def _dump(entity) -> dict[str, Any]:
    return entity.model_dump(mode="json")


@app.get("/api/status")
async def get_status() -> ResolveStatus:
    """Get current resolver status"""
    status_dict = resolve_status.copy()
    status_dict["resolve_in_progress"] = is_resolve_running()
    status_dict["tracked_entries"] = get_tracker().store.count()
    return ResolveStatus(**status_dict)


@app.get("/api/entities/{kind}")
async def list_entities(kind: MediaKind, status: Optional[TrackingStatus] = None, favorites: bool = False):
    """List tracked entries of one kind, optionally filtered."""
    def matches(entity) -> bool:
        if status is not None and entity.status != status:
            return False
        return entity.is_favorite or not favorites

    return [_dump(entity) for entity in get_tracker().store.query(kind, matches)]


@app.post("/api/entities/{kind}", status_code=201)
async def add_entity(kind: MediaKind, data: dict[str, Any]):
    """Start tracking an entry."""
    payload = {**data, "kind": kind.value}
    try:
        entity = ENTITY_MODELS[kind].model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    if not get_tracker().store.add(entity):
        raise HTTPException(status_code=HTTP_CONFLICT, detail=f"{kind.value} {entity.id} is already tracked")
    return _dump(get_tracker().store.get(kind, entity.id))


@app.get("/api/entities/{kind}/{entity_id}")
async def get_entity(kind: MediaKind, entity_id: str):
    return _dump(_require(kind, entity_id))


@app.delete("/api/entities/{kind}/{entity_id}")
async def delete_entity(kind: MediaKind, entity_id: str):
    """Stop tracking an entry."""
    if not get_tracker().store.remove(kind, entity_id):
        raise HTTPException(status_code=HTTP_NOT_FOUND, detail=f"{kind.value} {entity_id} is not tracked")
    return {"message": f"Removed {kind.value} {entity_id}"}


@app.post("/api/entities/{kind}/{entity_id}/status")
async def set_status(kind: MediaKind, entity_id: str, update: StatusUpdate):
    _require(kind, entity_id)
    get_tracker().store.update_status(kind, entity_id, update.status)
    return _dump(_require(kind, entity_id))


@app.post("/api/entities/{kind}/{entity_id}/toggle-completed")
async def toggle_completed(kind: MediaKind, entity_id: str):
    _require(kind, entity_id)
    get_tracker().store.toggle_completed(kind, entity_id)
    return _dump(_require(kind, entity_id))


@app.post("/api/entities/{kind}/{entity_id}/toggle-watching")
async def toggle_watching(kind: MediaKind, entity_id: str):
    _require(kind, entity_id)
    get_tracker().store.toggle_watching(kind, entity_id)
    return _dump(_require(kind, entity_id))


@app.post("/api/entities/{kind}/{entity_id}/favorite")
async def toggle_favorite(kind: MediaKind, entity_id: str):
    _require(kind, entity_id)
    get_tracker().store.toggle_favorite(kind, entity_id)
    return _dump(_require(kind, entity_id))


@app.patch("/api/entities/{kind}/{entity_id}/progress")
async def update_progress(kind: MediaKind, entity_id: str, update: ProgressUpdate):
    """Update reading progress; values are clamped to the known totals."""
    if not PROGRESS_FIELDS[kind]:
        raise HTTPException(status_code=400, detail=f"{kind.value} has no reading progress")
    _require(kind, entity_id)

    fields = update.model_dump(exclude_none=True)
    unknown = set(fields) - PROGRESS_FIELDS[kind]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown progress fields for {kind.value}: {sorted(unknown)}")

    get_tracker().store.update_progress(kind, entity_id, **fields)
    return _dump(_require(kind, entity_id))


@app.get("/api/calendar")
async def get_calendar():
    """Upcoming releases grouped by ISO day."""
    calendar = build_calendar(get_tracker().store.snapshot())
    return {day: [item.model_dump(mode="json") for item in items] for day, items in calendar.items()}


@app.get("/api/calendar/{day}")
async def get_calendar_day(day: str):
    calendar = build_calendar(get_tracker().store.snapshot())
    return [item.model_dump(mode="json") for item in items_on(calendar, day)]


@app.get("/api/stats")
async def get_stats():
    return compute_statistics(get_tracker().store.snapshot()).model_dump(mode="json")


@app.post("/api/resolve/trigger")
async def trigger_resolve():
    """Trigger an immediate release date check"""
    tracker = get_tracker()
    if tracker.resolver is None:
        raise HTTPException(status_code=503, detail="No TMDB API key configured")
    if not _start_resolve("Manual"):
        raise HTTPException(status_code=HTTP_CONFLICT, detail="Release date check already in progress")
    return {"message": "Release date check triggered successfully"}
