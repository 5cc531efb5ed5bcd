"""Service wiring: builds the store, provider and resolver from settings."""

import logging
from dataclasses import dataclass
from typing import Optional

import click

from .base_client import MetadataProvider
from .config import Settings, get_settings, validate_credentials
from .models import ResolveResult
from .resolver import ReleaseDateResolver
from .storage import JsonFileStorage, StorageBackend
from .store import EntityStore
from .tmdb_client import TMDBClient

logger = logging.getLogger(__name__)


@dataclass
class Tracker:
    """The running application: one store plus an optional resolver."""

    settings: Settings
    store: EntityStore
    provider: Optional[MetadataProvider] = None
    resolver: Optional[ReleaseDateResolver] = None


def build_provider(settings: Settings) -> Optional[MetadataProvider]:
    """Create the TMDB client, or None when no API key is configured."""
    is_valid, invalid = validate_credentials(settings)
    if not is_valid:
        logger.warning(f"Release dates disabled, missing/invalid settings: {', '.join(invalid)}")
        return None
    return TMDBClient(
        settings.tmdb_api_key,
        base_url=settings.tmdb_base_url,
        language=settings.tmdb_language,
        region=settings.tmdb_region,
        timeout=settings.tmdb_timeout,
        max_retries=settings.tmdb_max_retries,
        backoff_factor=settings.tmdb_backoff_factor,
    )


def build_tracker(
    settings: Optional[Settings] = None,
    storage: Optional[StorageBackend] = None,
    provider: Optional[MetadataProvider] = None,
) -> Tracker:
    """Assemble a Tracker. Missing pieces are built from settings."""
    if settings is None:
        settings = get_settings()
    if storage is None:
        storage = JsonFileStorage(settings.storage_path)
    if provider is None:
        provider = build_provider(settings)

    store = EntityStore(storage)
    resolver = ReleaseDateResolver(store, provider) if provider is not None else None
    return Tracker(settings=settings, store=store, provider=provider, resolver=resolver)


async def execute_resolve(tracker: Tracker) -> tuple[bool, Optional[ResolveResult]]:
    """Run one resolver pass.

    Returns:
        tuple: (success, result) - success indicates the pass ran, result is None if it could not
    """
    if tracker.resolver is None:
        logger.error("Cannot resolve release dates: no TMDB API key configured")
        return False, None

    result = await tracker.resolver.resolve()
    return True, result


def print_resolve_results(result: ResolveResult):
    """Print resolver results to console."""
    click.echo("\n=== Release Date Results ===")
    click.echo(f"Success: {result.success}")
    click.echo(f"Entries checked: {result.attempted}")
    click.echo(f"Dates found: {result.resolved}")
    click.echo(f"No upcoming date: {result.no_date}")
    click.echo(f"Failed: {result.failed}")

    if result.errors:
        click.echo(f"\nErrors ({len(result.errors)}):")
        for error in result.errors[:10]:  # Show first 10
            click.echo(f"  - {error}")
