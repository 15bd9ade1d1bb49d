# src/schedule_engine/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole engine.
- Nothing is required at import time; every value has a default.
- Services accept an explicit Settings so tests never touch the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

ENV_PREFIX = "SCHEDULE"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_timezone(name: str, default: str = "UTC") -> str:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return raw


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Logging ----
    log_level: str
    log_dir: Path

    # ---- Calendar ----
    timezone: str
    suggest_search_days: int
    suggest_max_results: int

    # ---- Critical path ----
    default_task_days: int
    hours_per_day: float

    # ---- Queries ----
    default_page_size: int

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
            log_dir=_env_path(_k("LOG_DIR"), Path(".local/schedule")),
            timezone=_env_timezone(_k("TIMEZONE")),
            suggest_search_days=_env_int(_k("SUGGEST_SEARCH_DAYS"), 30, minimum=1),
            suggest_max_results=_env_int(_k("SUGGEST_MAX_RESULTS"), 5, minimum=1),
            default_task_days=_env_int(_k("DEFAULT_TASK_DAYS"), 1, minimum=1),
            hours_per_day=_env_float(_k("HOURS_PER_DAY"), 8.0, minimum=1.0),
            default_page_size=_env_int(_k("DEFAULT_PAGE_SIZE"), 50, minimum=1),
        )

    @staticmethod
    def defaults() -> "Settings":
        """Settings with built-in defaults only (no environment lookups)."""
        return Settings(
            log_level="INFO",
            log_dir=Path(".local/schedule"),
            timezone="UTC",
            suggest_search_days=30,
            suggest_max_results=5,
            default_task_days=1,
            hours_per_day=8.0,
            default_page_size=50,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
