"""Runtime settings for webdav-backup with caching utilities."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from webdav_backup import __version__


class Settings(BaseSettings):
    """Process-wide runtime settings.

    The WebDAV connection itself (server, credentials, backup path) is user
    data and lives in ``ConfigStore``; these are the knobs of the engine.
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBDAV_BACKUP_",
        env_file=[".env.test", ".env"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_dir: Path = Path("logs")

    # Durable key-value area (config + sync log)
    data_dir: Path = Path("./data")
    store_filename: str = "storage.json"

    # Transport
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    proxy_max_attempts: int = Field(default=3, ge=1, le=10)
    proxy_backoff_seconds: float = Field(default=1.0, ge=0)
    user_agent: str = f"webdav-backup/{__version__}"

    # Sync log
    sync_log_max_entries: int = Field(default=50, ge=1)
    sync_log_display_limit: int = Field(default=20, ge=1)

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_filename


_SETTINGS_LOCK = RLock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, refresh: bool = False) -> Settings:
    """Return a cached ``Settings`` instance.

    Parameters
    ----------
    refresh:
        When ``True`` the cached instance is discarded and a new one is created.
    """

    global _SETTINGS_CACHE

    with _SETTINGS_LOCK:
        if refresh or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear the cached settings instance."""

    global _SETTINGS_CACHE

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


@contextmanager
def override_settings(**overrides: Any) -> Iterator[Settings]:
    """Temporarily override the cached settings within a context."""

    global _SETTINGS_CACHE

    with _SETTINGS_LOCK:
        previous_settings = _SETTINGS_CACHE

    base_settings = previous_settings or Settings()
    patched_settings = base_settings.model_copy(update=overrides)

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = patched_settings

    try:
        yield patched_settings
    finally:
        with _SETTINGS_LOCK:
            _SETTINGS_CACHE = previous_settings
