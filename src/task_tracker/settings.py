from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - TASKS_TIMEZONE: IANA zone name used to decide what "today" means (default: UTC)
    - LOG_LEVEL: console log level name (default: INFO)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    timezone_name: str
    log_level: str

    @property
    def tz(self) -> tzinfo:
        return _resolve_timezone(self.timezone_name)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _parse_timezone(value: str) -> str:
    name = value.strip()
    try:
        _resolve_timezone(name)
    except (ZoneInfoNotFoundError, ValueError):
        # Unknown zones fall back to UTC
        return "UTC"
    return name


def _parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return "INFO"
    return level


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/tasks.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        timezone_name=_parse_timezone(_get_env("TASKS_TIMEZONE", "UTC")),
        log_level=_parse_log_level(_get_env("LOG_LEVEL", "INFO")),
    )
