"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    operator_token: str | None
    seed_demo_data: bool
    semester_start: str | None
    semester_end: str | None
    default_booking_source: str
    default_external_source: str
    booking_status: str
    schedule_day_start: str
    schedule_day_end: str
    schedule_step_minutes: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; call ``get_settings.cache_clear()`` to reload."""
    return Settings(
        app_name=_env_str("APP_NAME", "Campus Room Reservation Service"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        database_path=Path(
            _env_str("DATABASE_PATH", str(PROJECT_ROOT / "data" / "reservations.db"))
        ),
        operator_token=os.getenv("OPERATOR_TOKEN") or None,
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
        semester_start=os.getenv("SEMESTER_START") or None,
        semester_end=os.getenv("SEMESTER_END") or None,
        default_booking_source=_env_str("DEFAULT_BOOKING_SOURCE", "local"),
        default_external_source=_env_str("DEFAULT_EXTERNAL_SOURCE", "libcal"),
        booking_status="Booked",
        schedule_day_start=_env_str("SCHEDULE_DAY_START", "08:00"),
        schedule_day_end=_env_str("SCHEDULE_DAY_END", "20:00"),
        schedule_step_minutes=_env_int("SCHEDULE_STEP_MINUTES", 60),
    )
