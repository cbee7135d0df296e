"""Centralised configuration management for the campus events service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the relational store."""

    url: str = "sqlite:///./campus_events.db"
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class LifecycleConfig:
    """Settings for the background status sweep."""

    enabled: bool = True
    interval_minutes: int = 15


@dataclass(frozen=True)
class CheckInConfig:
    """Rendering and signing settings for check-in QR codes."""

    preview_width: int = 256
    download_width: int = 512
    signing_secret: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    """Aggregate application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    check_in: CheckInConfig = field(default_factory=CheckInConfig)
    log_level: str = "INFO"
    page_size: int = 10


def _get_int(var: str, default: int) -> int:
    value = os.getenv(var)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _get_bool(var: str, default: bool) -> bool:
    value = os.getenv(var)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _build_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT")
    name = os.getenv("DB_NAME")

    if all([user, password, host, port, name]):
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    return DatabaseConfig.url


def load_config() -> AppConfig:
    """Build a fresh configuration from the current environment."""

    database = DatabaseConfig(
        url=_build_database_url(),
        pool_size=_get_int("DB_POOL_SIZE", 5),
        max_overflow=_get_int("DB_MAX_OVERFLOW", 10),
    )
    lifecycle = LifecycleConfig(
        enabled=_get_bool("LIFECYCLE_SWEEP_ENABLED", True),
        interval_minutes=_get_int("LIFECYCLE_SWEEP_MINUTES", 15),
    )
    check_in = CheckInConfig(
        preview_width=_get_int("QR_PREVIEW_WIDTH", 256),
        download_width=_get_int("QR_DOWNLOAD_WIDTH", 512),
        signing_secret=os.getenv("CHECKIN_SIGNING_SECRET") or None,
    )
    return AppConfig(
        database=database,
        lifecycle=lifecycle,
        check_in=check_in,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        page_size=_get_int("EVENTS_PAGE_SIZE", 10),
    )


@lru_cache()
def get_config() -> AppConfig:
    """Return the lazily initialised application configuration."""

    return load_config()
