"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "SoakMapBot/1.0 (+https://soakmap.com/bot)"


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    source_name: str = "soakoregon"
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout_seconds: float = 30.0
    request_delay_ms: int = 500
    insert_batch_size: int = 100
    dedup_radius_miles: float = 1.0
    dedup_match_miles: float = 0.1
    dedup_name_similarity: float = 0.85


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default).strip() or default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    source_name = (os.getenv("SCRAPE_SOURCE") or "soakoregon").strip().lower()
    user_agent = os.getenv("SCRAPER_USER_AGENT") or DEFAULT_USER_AGENT
    fetch_timeout_seconds = _env_number("FETCH_TIMEOUT_SECONDS", "30", float)
    request_delay_ms = _env_number("SCRAPE_DELAY_MS", "500", int)
    insert_batch_size = _env_number("INSERT_BATCH_SIZE", "100", int)
    dedup_radius_miles = _env_number("DEDUP_RADIUS_MILES", "1.0", float)
    dedup_match_miles = _env_number("DEDUP_MATCH_MILES", "0.1", float)
    dedup_name_similarity = _env_number("DEDUP_NAME_SIMILARITY", "0.85", float)

    if insert_batch_size <= 0:
        raise ConfigError("INSERT_BATCH_SIZE must be positive")
    if not 0 < dedup_name_similarity <= 1:
        raise ConfigError("DEDUP_NAME_SIMILARITY must be in (0, 1]")

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")

    return Settings(
        database_url=database_url,
        source_name=source_name,
        user_agent=user_agent,
        fetch_timeout_seconds=fetch_timeout_seconds,
        request_delay_ms=request_delay_ms,
        insert_batch_size=insert_batch_size,
        dedup_radius_miles=dedup_radius_miles,
        dedup_match_miles=dedup_match_miles,
        dedup_name_similarity=dedup_name_similarity,
    )
