"""Health check script for Docker container."""

import json
import logging
import sys

from media_tracker.config import get_settings, validate_credentials

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CONFIG_INSTRUCTION = "   Set tmdb.api_key in config.yaml or the TMDB_API_KEY environment variable"


def main():
    """Check that configuration, storage and the TMDB key are usable."""
    try:
        settings = get_settings()
    except Exception as e:
        logger.error(f"[ERROR] UNHEALTHY: Failed to load configuration: {e}")
        sys.exit(1)

    storage_path = settings.storage_path
    if storage_path.exists():
        try:
            with open(storage_path, "r", encoding="utf-8") as f:
                json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"[ERROR] UNHEALTHY: Watchlist file is unreadable: {e}")
            logger.error(f"   Path: {storage_path}")
            sys.exit(1)

    is_valid, invalid = validate_credentials(settings)
    if not is_valid:
        logger.error(f"[ERROR] UNHEALTHY: Missing or invalid settings: {', '.join(invalid)}")
        logger.error(CONFIG_INSTRUCTION)
        sys.exit(1)

    logger.info("[OK] HEALTHY: Configuration, storage and TMDB key present")
    sys.exit(0)


if __name__ == "__main__":
    main()
