"""TMDB API client."""

import asyncio
import logging
from datetime import date
from typing import Optional

from .base_client import BaseAPIClient, MetadataProvider
from .constants import TMDB_BASE_URL, TMDB_IMAGE_BASE_URL, TMDB_POSTER_SIZE
from .models import MovieMinimal, ShowMinimal

logger = logging.getLogger(__name__)

# v3 API keys are 32 hex characters; v4 read access tokens are long JWTs
V3_KEY_MAX_LENGTH = 40


def parse_tmdb_date(value: Optional[str]) -> Optional[date]:
    """Parse a TMDB date string. Empty strings mean "no date"."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unparsable TMDB date: {value!r}")
        return None


def poster_url(poster_path: Optional[str], size: str = TMDB_POSTER_SIZE) -> Optional[str]:
    """Full image URL for a TMDB ``poster_path``."""
    if not poster_path:
        return None
    return f"{TMDB_IMAGE_BASE_URL}/{size}{poster_path}"


class TMDBClient(BaseAPIClient, MetadataProvider):
    """Client for The Movie Database API v3."""

    def __init__(
        self,
        api_key: str,
        base_url: str = TMDB_BASE_URL,
        language: str = "en-US",
        region: str = "US",
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
    ):
        """Initialize TMDB client; supports both v3 keys and v4 tokens."""
        headers = {}
        params = {"language": language, "region": region}
        if len(api_key) > V3_KEY_MAX_LENGTH:
            headers["Authorization"] = f"Bearer {api_key}"
        else:
            params["api_key"] = api_key

        super().__init__(
            base_url=base_url,
            headers=headers,
            params=params,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )

    def get_show_details(self, show_id: int, append_to_response: Optional[list[str]] = None) -> dict:
        """Fetch TV show details by ID."""
        params = {}
        if append_to_response:
            params["append_to_response"] = ",".join(append_to_response)
        return self._get(f"/tv/{show_id}", params, service_name="TMDB")

    def get_movie_details(self, movie_id: int, append_to_response: Optional[list[str]] = None) -> dict:
        """Fetch movie details by ID."""
        params = {}
        if append_to_response:
            params["append_to_response"] = ",".join(append_to_response)
        return self._get(f"/movie/{movie_id}", params, service_name="TMDB")

    def find_by_external_id(self, external_id, source: str) -> dict:
        """Look up TMDB entries by an external id (``imdb_id``, ``tvdb_id``, ...)."""
        return self._get(f"/find/{external_id}", {"external_source": source}, service_name="TMDB")

    def search_multi(self, query: str) -> dict:
        """Search movies, shows and people by title."""
        return self._get("/search/multi", {"query": query, "include_adult": "false"}, service_name="TMDB")

    async def fetch_show_minimal(self, show_id: int) -> ShowMinimal:
        data = await asyncio.to_thread(self.get_show_details, show_id)
        next_episode = data.get("next_episode_to_air") or {}
        return ShowMinimal(next_episode_air_date=parse_tmdb_date(next_episode.get("air_date")))

    async def fetch_movie_minimal(self, movie_id: int) -> MovieMinimal:
        data = await asyncio.to_thread(self.get_movie_details, movie_id)
        return MovieMinimal(release_date=parse_tmdb_date(data.get("release_date")))
