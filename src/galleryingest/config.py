"""Configuration management for galleryingest.

This module provides centralized configuration management using environment variables
and Streamlit secrets as fallback.
"""

import os
from typing import Any

try:
    import streamlit as st

    STREAMLIT_AVAILABLE = True
except ImportError:
    STREAMLIT_AVAILABLE = False

from .logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        """Initialize configuration."""
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables or Streamlit secrets.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None and STREAMLIT_AVAILABLE:
            try:
                value = st.secrets.get(key)
            except Exception:  # nosec B110
                # No secrets file outside a Streamlit run
                pass

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local", "test"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["production", "prod"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get environment variable with type casting."""
    return get_config().get(key, default, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


def is_production() -> bool:
    """Check if running in production mode."""
    return get_config().is_production()


# Common configuration getters
def get_storage_type() -> str:
    """Get the configured storage backend ("local" or "gcs")."""
    return str(get_env("STORAGE_TYPE", "local")).lower()


def get_upload_dir() -> str:
    """Get the directory used by local storage."""
    return str(get_env("UPLOAD_DIR", "public/uploads/gallery"))


def get_upload_url_prefix() -> str:
    """Get the URL prefix local storage paths are served under."""
    return str(get_env("UPLOAD_URL_PREFIX", "/api/uploads/gallery"))


def get_database_path() -> str:
    """Get the DuckDB database path."""
    return str(get_env("DATABASE_PATH", "data/gallery.duckdb"))


def get_geocode_timeout() -> float:
    """Get the reverse geocoding request timeout in seconds."""
    return float(get_env("GEOCODE_TIMEOUT", 5.0, float))


def get_ingest_max_workers() -> int:
    """Get the number of groups ingested in parallel within one batch."""
    return max(1, int(get_env("INGEST_MAX_WORKERS", 1, int)))


def get_admin_emails() -> set[str]:
    """Get the set of administrator email addresses."""
    raw = str(get_env("ADMIN_EMAILS", ""))
    return {email.strip().lower() for email in raw.split(",") if email.strip()}
