"""Constants used throughout the application."""

from enum import Enum


class MediaKind(str, Enum):
    """Kinds of media that can be tracked."""

    SHOW = "show"
    MOVIE = "movie"
    MANGA = "manga"
    BOOK = "book"


class DateField(str, Enum):
    """Cached release-date fields filled in by the resolver."""

    NEXT_AIR_DATE = "next_air_date"
    RELEASE_DATE = "release_date"


# Which cached date field each kind carries
DATE_FIELD_BY_KIND = {
    MediaKind.SHOW: DateField.NEXT_AIR_DATE,
    MediaKind.MOVIE: DateField.RELEASE_DATE,
}

# HTTP Status Codes
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_TOO_MANY_REQUESTS = 429

# TMDB
TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
TMDB_POSTER_SIZE = "w500"

# Statistics fallbacks (minutes)
DEFAULT_EPISODE_RUNTIME_MINUTES = 45
DEFAULT_MOVIE_RUNTIME_MINUTES = 120
TOP_SHOWS_LIMIT = 5

# Backup file format
EXPORT_APP_NAME = "MediaTracker"
EXPORT_VERSION = "1.3.1"
STORE_SCHEMA_VERSION = 1

# Default values
DEFAULT_RESOLVE_INTERVAL_MINUTES = 360  # 6 hours
DEFAULT_WEB_UI_PORT = 8080
