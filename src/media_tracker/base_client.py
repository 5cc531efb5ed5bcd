"""Base API client with common functionality."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import HTTP_FORBIDDEN, HTTP_NOT_FOUND, HTTP_TOO_MANY_REQUESTS, HTTP_UNAUTHORIZED
from .models import MovieMinimal, ShowMinimal

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = [HTTP_TOO_MANY_REQUESTS, 500, 502, 503, 504]


class MetadataProvider(ABC):
    """Source of the release dates the resolver caches.

    Implementations may raise any exception on transport or HTTP failure;
    callers treat that as "no result this attempt".
    """

    @abstractmethod
    async def fetch_show_minimal(self, show_id: int) -> ShowMinimal:
        """Return the next episode air date of a show (None when there is none)."""
        ...

    @abstractmethod
    async def fetch_movie_minimal(self, movie_id: int) -> MovieMinimal:
        """Return the release date of a movie (None when unknown)."""
        ...


class BaseAPIClient:
    """Base class for API clients with common request handling."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
    ):
        """Initialize API client with a retrying session."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_params = dict(params or {})
        self.session = requests.Session()

        # Configure retry strategy for rate limits (429) and server errors
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        default_headers = {"Accept": "application/json"}
        if headers:
            default_headers.update(headers)

        self.session.headers.update(default_headers)

    def _handle_error_status(self, response: requests.Response, service_name: str) -> None:
        """Log HTTP errors consistently."""
        if response.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            logger.error(f"{service_name} authentication failed (HTTP {response.status_code})")
            logger.error(f"{service_name} API key is invalid or missing")
        elif response.status_code == HTTP_NOT_FOUND:
            logger.warning(f"{service_name} resource not found: {response.url}")
        elif response.status_code == HTTP_TOO_MANY_REQUESTS:
            logger.warning(f"{service_name} rate limit exceeded")
        elif response.status_code >= 500:
            logger.error(f"{service_name} server error (HTTP {response.status_code})")

    def _get(self, path: str, params: Optional[dict] = None, service_name: str = "API") -> dict:
        """GET a JSON document relative to the base URL."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = dict(self.default_params)
        if params:
            query.update(params)

        response = self.session.get(url, params=query, timeout=self.timeout)
        if response.status_code >= 400:
            self._handle_error_status(response, service_name)
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self.session.close()
