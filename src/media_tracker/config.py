"""Configuration management using Pydantic models."""

import logging
import os
import shutil
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_RESOLVE_INTERVAL_MINUTES, TMDB_BASE_URL

logger = logging.getLogger(__name__)


# Placeholder values that indicate unconfigured credentials
INVALID_PLACEHOLDERS = {
    "YOUR_TMDB_API_KEY_HERE",
    "",
}

CONFIG_ENV_VAR = "MEDIA_TRACKER_CONFIG"
API_KEY_ENV_VAR = "TMDB_API_KEY"


class TMDBConfig(BaseModel):
    """TMDB API configuration."""
    api_key: str = ""
    base_url: str = TMDB_BASE_URL
    language: str = "en-US"
    region: str = "US"
    timeout_seconds: float = Field(default=15.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    backoff_factor: float = Field(default=1.0, ge=0)


class StorageConfig(BaseModel):
    """Watchlist persistence settings."""
    path: str = "data/watchlist.json"


class AppConfig(BaseModel):
    """Application settings."""
    log_level: str = "INFO"
    resolve_interval_minutes: int = Field(default=DEFAULT_RESOLVE_INTERVAL_MINUTES, ge=1)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept any case for the log level."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Invalid log level: {v}")
        return level


class Config(BaseModel):
    """Root configuration model."""
    tmdb: TMDBConfig = Field(default_factory=TMDBConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    @field_validator("tmdb", "storage", "app", mode="before")
    @classmethod
    def ensure_section(cls, v):
        """Treat an empty YAML section as defaults."""
        return v if v is not None else {}


class Settings:
    """Application settings loaded from config.yaml."""

    def __init__(self, config_path: Path = None):
        """Load and validate configuration."""
        self.config_path = Path(config_path) if config_path else self._get_config_path()

        if not self.config_path.exists():
            self._create_config_template()

        self._load_config()

    def _get_config_path(self) -> Path:
        """Get config file path based on environment."""
        if os.environ.get(CONFIG_ENV_VAR):
            return Path(os.environ[CONFIG_ENV_VAR])
        if os.path.exists("/.dockerenv"):
            return Path("/app/data/config.yaml")
        return Path("data/config.yaml")

    def _create_config_template(self) -> None:
        """Create config template from example."""
        example_path = Path("config.example.yaml")
        if example_path.exists():
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(example_path, self.config_path)
            logger.info(f"✅ Created config template: {self.config_path}")
            logger.info("📝 Please edit the config file with your TMDB API key")

    def _load_config(self) -> None:
        """Load configuration from YAML using Pydantic."""
        try:
            raw_config = {}
            if self.config_path.exists():
                with open(self.config_path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
                logger.info(f"✅ Loaded configuration from {self.config_path}")
            else:
                logger.info(f"No config file at {self.config_path}, using defaults")

            config = Config(**raw_config)

            self.tmdb_api_key = os.environ.get(API_KEY_ENV_VAR) or config.tmdb.api_key
            self.tmdb_base_url = config.tmdb.base_url
            self.tmdb_language = config.tmdb.language
            self.tmdb_region = config.tmdb.region
            self.tmdb_timeout = config.tmdb.timeout_seconds
            self.tmdb_max_retries = config.tmdb.max_retries
            self.tmdb_backoff_factor = config.tmdb.backoff_factor

            self.storage_path = Path(config.storage.path)

            self.log_level = config.app.log_level
            self.resolve_interval_minutes = config.app.resolve_interval_minutes

        except Exception as e:
            logger.error(f"❌ Failed to load config: {e}")
            raise


def validate_credentials(settings: Settings) -> tuple[bool, list[str]]:
    """
    Validate that the TMDB API key is not a placeholder value.
    Returns (is_valid, list_of_invalid_settings).
    """
    missing_or_invalid = []
    if not settings.tmdb_api_key or settings.tmdb_api_key in INVALID_PLACEHOLDERS:
        missing_or_invalid.append(API_KEY_ENV_VAR)

    return len(missing_or_invalid) == 0, missing_or_invalid


# Singleton cache for settings
_SETTINGS_SINGLETON = None

def get_settings() -> Settings:
    """Get (cached) application settings singleton."""
    global _SETTINGS_SINGLETON
    if _SETTINGS_SINGLETON is None:
        _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON

def reload_settings() -> Settings:
    """Force reload of application settings singleton."""
    global _SETTINGS_SINGLETON
    _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON
