"""Command-line interface for media-tracker."""

import asyncio
import logging
import sys

import click

from .backup import BackupError, ImportMode, export_backup, import_backup
from .config import get_settings
from .constants import DEFAULT_WEB_UI_PORT, MediaKind
from .models import ENTITY_MODELS, TrackingStatus
from .release_calendar import build_calendar, items_on, mark_days
from .stats import compute_statistics, format_minutes
from .tracker_service import Tracker, build_tracker, execute_resolve, print_resolve_results
from .tvtime import import_tvtime

logger = logging.getLogger(__name__)

KIND_CHOICE = click.Choice([kind.value for kind in MediaKind])
STATUS_CHOICE = click.Choice([status.value for status in TrackingStatus])
LOG_LEVEL_CHOICE = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"])


def setup_logging(level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def log_level_option(func):
    return click.option(
        "--log-level",
        type=LOG_LEVEL_CHOICE,
        default=None,
        help="Logging level (defaults to the configured level)",
    )(func)


def _load_tracker(log_level: str = None) -> Tracker:
    """Load settings, configure logging and open the store."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    return build_tracker(settings)


def _finish(changed: bool, kind: str, entity_id: str, message: str):
    """Report the outcome of a mutation and exit accordingly."""
    if changed:
        click.echo(message)
        sys.exit(0)
    click.echo(f"No change: {kind} {entity_id} is not tracked or the value was invalid", err=True)
    sys.exit(1)


def _describe(entity) -> str:
    favorite = " ★" if entity.is_favorite else ""
    line = f"[{entity.kind}] {entity.id} - {entity.title} ({entity.status.value}){favorite}"
    if entity.kind == MediaKind.SHOW.value:
        line += f" - {len(entity.watched_episodes)} episodes watched"
        if entity.next_air_date:
            line += f", next: {entity.next_air_date.isoformat()}"
    elif entity.kind == MediaKind.MOVIE.value:
        if entity.release_date:
            line += f" - release: {entity.release_date.isoformat()}"
    elif entity.kind == MediaKind.MANGA.value:
        line += f" - ch. {entity.current_chapter}/{entity.total_chapters or '?'}"
        line += f", vol. {entity.current_volume}/{entity.total_volumes or '?'}"
    elif entity.kind == MediaKind.BOOK.value:
        line += f" - p. {entity.current_page}/{entity.total_pages or '?'}"
    return line


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Personal tracker for shows, movies, manga and books."""
    pass


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@click.option("--title", required=True, help="Display title")
@click.option("--poster-url", default=None, help="Poster or cover image URL")
@click.option("--status", type=STATUS_CHOICE, default=TrackingStatus.PLAN_TO_WATCH.value, help="Initial status")
@click.option("--total", type=int, default=None, help="Total chapters (manga) or pages (book)")
@click.option("--author", "authors", multiple=True, help="Book author (repeatable)")
@log_level_option
def add(kind, entity_id, title, poster_url, status, total, authors, log_level):
    """Start tracking an entry."""
    tracker = _load_tracker(log_level)
    media_kind = MediaKind(kind)

    data = {"id": entity_id, "title": title, "poster_url": poster_url, "status": status}
    if media_kind == MediaKind.MANGA and total is not None:
        data["total_chapters"] = total
    elif media_kind == MediaKind.BOOK:
        data["authors"] = list(authors)
        if total is not None:
            data["total_pages"] = total

    try:
        entity = ENTITY_MODELS[media_kind].model_validate(data)
    except ValueError as e:
        click.echo(f"Error: invalid {kind}: {e}", err=True)
        sys.exit(1)

    if tracker.store.add(entity):
        click.echo(f"Added {kind} {entity.id}: {title}")
    else:
        click.echo(f"{kind} {entity.id} is already tracked")


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@log_level_option
def remove(kind, entity_id, log_level):
    """Stop tracking an entry."""
    tracker = _load_tracker(log_level)
    _finish(tracker.store.remove(kind, entity_id), kind, entity_id, f"Removed {kind} {entity_id}")


@main.command(name="list")
@click.option("--kind", type=KIND_CHOICE, default=None, help="Only this media kind")
@click.option("--status", type=STATUS_CHOICE, default=None, help="Only this status")
@click.option("--favorites", is_flag=True, help="Only favorites")
@log_level_option
def list_entries(kind, status, favorites, log_level):
    """List tracked entries."""
    tracker = _load_tracker(log_level)

    def matches(entity) -> bool:
        if status and entity.status.value != status:
            return False
        if favorites and not entity.is_favorite:
            return False
        return True

    entries = tracker.store.query(kind, matches)
    if not entries:
        click.echo("Nothing tracked yet")
        return
    for entity in entries:
        click.echo(_describe(entity))


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@click.argument("status", type=STATUS_CHOICE)
@log_level_option
def status(kind, entity_id, status, log_level):
    """Set the status of an entry."""
    tracker = _load_tracker(log_level)
    changed = tracker.store.update_status(kind, entity_id, status)
    _finish(changed, kind, entity_id, f"{kind} {entity_id} is now {status}")


@main.command(name="toggle-completed")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@log_level_option
def toggle_completed(kind, entity_id, log_level):
    """Flip an entry between completed and plan_to_watch."""
    tracker = _load_tracker(log_level)
    changed = tracker.store.toggle_completed(kind, entity_id)
    entity = tracker.store.get(kind, entity_id)
    _finish(changed, kind, entity_id, f"{kind} {entity_id} is now {entity.status.value if entity else '?'}")


@main.command(name="toggle-watching")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@log_level_option
def toggle_watching(kind, entity_id, log_level):
    """Flip an entry between watching and plan_to_watch."""
    tracker = _load_tracker(log_level)
    changed = tracker.store.toggle_watching(kind, entity_id)
    entity = tracker.store.get(kind, entity_id)
    _finish(changed, kind, entity_id, f"{kind} {entity_id} is now {entity.status.value if entity else '?'}")


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@log_level_option
def favorite(kind, entity_id, log_level):
    """Toggle the favorite flag of an entry."""
    tracker = _load_tracker(log_level)
    changed = tracker.store.toggle_favorite(kind, entity_id)
    entity = tracker.store.get(kind, entity_id)
    state = "a favorite" if entity and entity.is_favorite else "not a favorite"
    _finish(changed, kind, entity_id, f"{kind} {entity_id} is now {state}")


@main.command()
@click.argument("kind", type=click.Choice([MediaKind.MANGA.value, MediaKind.BOOK.value]))
@click.argument("entity_id")
@click.option("--chapter", type=int, default=None, help="Current chapter (manga)")
@click.option("--volume", type=int, default=None, help="Current volume (manga)")
@click.option("--total-chapters", type=int, default=None, help="Total chapters (manga)")
@click.option("--total-volumes", type=int, default=None, help="Total volumes (manga)")
@click.option("--page", type=int, default=None, help="Current page (book)")
@click.option("--total-pages", type=int, default=None, help="Total pages (book)")
@log_level_option
def progress(kind, entity_id, chapter, volume, total_chapters, total_volumes, page, total_pages, log_level):
    """Update reading progress (values are clamped to the known totals)."""
    tracker = _load_tracker(log_level)
    fields = {
        "current_chapter": chapter,
        "current_volume": volume,
        "total_chapters": total_chapters,
        "total_volumes": total_volumes,
        "current_page": page,
        "total_pages": total_pages,
    }
    fields = {name: value for name, value in fields.items() if value is not None}
    changed = tracker.store.update_progress(kind, entity_id, **fields)
    entity = tracker.store.get(kind, entity_id)
    _finish(changed, kind, entity_id, _describe(entity) if entity else "")


@main.command()
@click.argument("show_id")
@click.argument("season", type=int)
@click.argument("episode", type=int)
@click.option("--episode-id", type=int, default=-1, help="Provider episode id")
@click.option("--unwatch", is_flag=True, help="Mark the episode unwatched instead")
@log_level_option
def episode(show_id, season, episode, episode_id, unwatch, log_level):
    """Mark a show episode watched (or unwatched)."""
    tracker = _load_tracker(log_level)
    if unwatch:
        changed = tracker.store.mark_episode_unwatched(show_id, season, episode)
        message = f"S{season:02d}E{episode:02d} of show {show_id} marked unwatched"
    else:
        changed = tracker.store.mark_episode_watched(show_id, season, episode, episode_id=episode_id)
        message = f"S{season:02d}E{episode:02d} of show {show_id} marked watched"
    _finish(changed, "show", show_id, message)


@main.command(name="movie-watched")
@click.argument("movie_id")
@click.option("--unwatch", is_flag=True, help="Clear the watched date instead")
@log_level_option
def movie_watched(movie_id, unwatch, log_level):
    """Mark a movie watched (or unwatched)."""
    tracker = _load_tracker(log_level)
    if unwatch:
        changed = tracker.store.mark_movie_unwatched(movie_id)
        message = f"movie {movie_id} marked unwatched"
    else:
        changed = tracker.store.mark_movie_watched(movie_id)
        message = f"movie {movie_id} marked watched"
    _finish(changed, "movie", movie_id, message)


@main.command()
@click.option("--day", default=None, help="Only this day (YYYY-MM-DD)")
@log_level_option
def calendar(day, log_level):
    """Show upcoming releases from cached dates."""
    tracker = _load_tracker(log_level)
    days = build_calendar(tracker.store.snapshot())

    if day:
        days = {day: items_on(days, day)} if items_on(days, day) else {}
    if not days:
        click.echo("No upcoming releases")
        return

    marks = mark_days(days)
    for date_key, items in days.items():
        click.echo(f"\n{date_key} [{', '.join(sorted(marks[date_key]))}]")
        for item in items:
            click.echo(f"  - [{item.kind.value}] {item.title}")


@main.command(name="resolve-dates")
@log_level_option
def resolve_dates(log_level):
    """Fetch missing release dates from TMDB."""
    tracker = _load_tracker(log_level)
    try:
        success, result = asyncio.run(execute_resolve(tracker))
    except Exception as e:
        logger.exception("Release date resolution failed with error")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not success:
        sys.exit(1)
    print_resolve_results(result)
    sys.exit(0 if result.success else 1)


@main.command()
@log_level_option
def stats(log_level):
    """Show library statistics."""
    tracker = _load_tracker(log_level)
    statistics = compute_statistics(tracker.store.snapshot())

    click.echo("\n=== Statistics ===")
    for label, kind_stats in (
        ("Shows", statistics.shows),
        ("Movies", statistics.movies),
        ("Manga", statistics.mangas),
        ("Books", statistics.books),
    ):
        by_status = ", ".join(f"{name}={count}" for name, count in kind_stats.by_status.items() if count)
        click.echo(f"{label}: {kind_stats.total}" + (f" ({by_status})" if by_status else ""))

    click.echo(f"Time watching shows: {format_minutes(statistics.shows.minutes_spent)}")
    click.echo(f"Time watching movies: {format_minutes(statistics.movies.minutes_spent)}")
    click.echo(f"Episodes watched: {statistics.total_watched_episodes}")
    click.echo(f"Chapters read: {statistics.chapters_read}")
    click.echo(f"Pages read: {statistics.pages_read}")
    if statistics.top_shows:
        click.echo("\nTop shows:")
        for show in statistics.top_shows:
            click.echo(f"  - {show.title}: {show.watched_episodes} episodes")


@main.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False))
@log_level_option
def export_command(path, log_level):
    """Write a JSON backup of the watchlist."""
    tracker = _load_tracker(log_level)
    export = export_backup(tracker.store, path)
    click.echo(
        f"Exported {export.stats.total_shows} shows, {export.stats.total_movies} movies, "
        f"{export.stats.total_mangas} manga, {export.stats.total_books} books to {path}"
    )


@main.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in ImportMode]),
    default=ImportMode.MERGE.value,
    help="merge keeps current entries, replace discards them",
)
@log_level_option
def import_command(path, mode, log_level):
    """Import a JSON backup into the watchlist."""
    tracker = _load_tracker(log_level)
    try:
        added = import_backup(tracker.store, path, ImportMode(mode))
    except BackupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Imported {added} entries ({mode})")


@main.command(name="import-tvtime")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@log_level_option
def import_tvtime_command(path, log_level):
    """Import a TV Time JSON export, matching titles on TMDB."""
    tracker = _load_tracker(log_level)
    if tracker.provider is None:
        click.echo("Error: a TMDB API key is required to match TV Time entries", err=True)
        sys.exit(1)
    try:
        result = import_tvtime(tracker.store, path, tracker.provider)
    except BackupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Imported {result.shows} shows and {result.movies} movies from TV Time")
    if result.skipped:
        click.echo(f"Already tracked: {result.skipped}")
    if result.failed:
        click.echo(f"Not found on TMDB ({len(result.failed)}):")
        for title in result.failed:
            click.echo(f"  - {title}")


@main.command()
@click.option(
    "--interval",
    type=int,
    default=None,
    help="Minutes between release date checks (defaults to the configured interval)",
)
@click.option("--port", type=int, default=DEFAULT_WEB_UI_PORT, help="Web API port")
@click.option("--host", type=str, default="0.0.0.0", help="Web API host")
@log_level_option
def web(interval, port, host, log_level):
    """Run the JSON web API with periodic release date checks."""
    import uvicorn
    from .web import app, configure

    tracker = _load_tracker(log_level)
    interval = interval or tracker.settings.resolve_interval_minutes

    logger.info("="*60)
    logger.info("media-tracker - Web API Mode")
    logger.info("="*60)
    logger.info(f"Web API: http://localhost:{port}")
    logger.info(f"Release date interval: {interval} minutes")
    logger.info("="*60)

    configure(tracker, interval_minutes=interval)

    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        logger.info("Web API stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
