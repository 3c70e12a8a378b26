"""Configuration management for calendar_aggregator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .feed_cache import DEFAULT_CAPACITY, DEFAULT_FRESHNESS_SECONDS
from .feed_fetcher import MAX_BODY_BYTES, MAX_REDIRECTS
from .http_client import DEFAULT_REQUEST_TIMEOUT
from .stores import DEFAULT_JOBS_PATH

logger = logging.getLogger(__name__)

DEFAULT_SOURCES_PATH = Path.home() / ".config" / "calendar_aggregator" / "config.json"
DEFAULT_WINDOW_DAYS = 30


@dataclass
class AggregatorConfig:
    """Runtime settings with the documented defaults."""

    sources_file: Path = field(default_factory=lambda: DEFAULT_SOURCES_PATH)
    jobs_file: Path = field(default_factory=lambda: DEFAULT_JOBS_PATH)
    cache_ttl_seconds: float = DEFAULT_FRESHNESS_SECONDS
    cache_capacity: int = DEFAULT_CAPACITY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_redirects: int = MAX_REDIRECTS
    max_body_bytes: int = MAX_BODY_BYTES
    default_window_days: int = DEFAULT_WINDOW_DAYS
    log_level: Optional[str] = None
    debug: bool = False


# env var -> (config attribute, converter)
_NUMERIC_SETTINGS = {
    "CALAGG_CACHE_TTL_SECONDS": ("cache_ttl_seconds", float),
    "CALAGG_CACHE_CAPACITY": ("cache_capacity", int),
    "CALAGG_REQUEST_TIMEOUT": ("request_timeout", float),
    "CALAGG_MAX_REDIRECTS": ("max_redirects", int),
    "CALAGG_MAX_BODY_BYTES": ("max_body_bytes", int),
    "CALAGG_DEFAULT_WINDOW_DAYS": ("default_window_days", int),
}


class ConfigManager:
    """Builds AggregatorConfig from environment variables and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug(
                "Failed to read .env file for defaults (continuing): %s",
                str(self.env_file_path),
                exc_info=True,
            )
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> AggregatorConfig:
        """Build configuration from CALAGG_* environment variables.

        Invalid numeric values are ignored with a warning.

        Returns:
            AggregatorConfig with environment overrides applied
        """
        cfg = AggregatorConfig()

        sources_file = os.environ.get("CALAGG_SOURCES_FILE")
        if sources_file:
            cfg.sources_file = Path(sources_file).expanduser()

        jobs_file = os.environ.get("CALAGG_JOBS_FILE")
        if jobs_file:
            cfg.jobs_file = Path(jobs_file).expanduser()

        for env_name, (attr, convert) in _NUMERIC_SETTINGS.items():
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                value = convert(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)
                continue
            if value <= 0:
                logger.warning("Invalid %s=%r (must be positive); ignoring", env_name, raw)
                continue
            setattr(cfg, attr, value)

        log_level = os.environ.get("CALAGG_LOG_LEVEL")
        if log_level:
            cfg.log_level = log_level.upper()

        cfg.debug = os.environ.get("CALAGG_DEBUG", "").lower() in ("1", "true", "yes")
        return cfg

    def load_full_config(self) -> AggregatorConfig:
        """Load .env file and build configuration from environment.

        Returns:
            AggregatorConfig
        """
        self.load_env_file()
        return self.build_config_from_env()
