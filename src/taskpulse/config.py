# src/taskpulse/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (no backend configured -> offline mode).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time as dtime
from pathlib import Path
from typing import TypeVar

from dotenv import load_dotenv

ENV_PREFIX = "TASKPULSE"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


N = TypeVar("N", int, float)


def _env_number(name: str, default: N, *, low: N, high: N | None = None) -> N:
    """Numeric env var clamped to [low, high]; malformed values fall back to default."""
    raw = os.getenv(name)
    value = default
    if raw is not None and raw.strip() != "":
        try:
            value = type(default)(raw.strip())
        except ValueError:
            value = default
    value = max(low, value)
    return value if high is None else min(high, value)


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_clock(name: str, default: dtime) -> dtime:
    """Parse HH:MM; malformed values fall back to the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        hh, mm = raw.strip().split(":", 1)
        return dtime(hour=int(hh), minute=int(mm))
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend (Supabase-compatible) ----
    supabase_url: str
    supabase_anon_key: str
    http_timeout_seconds: float
    signup_redirect_url: str | None

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    session_path: Path

    # ---- Notifications ----
    notifications_enabled: bool
    deadline_reminder_hour: int
    daily_review_time: dtime
    check_in_time: dtime
    notification_poll_seconds: float

    # ---- Files ----
    max_file_size_mb: int

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskpulse") or "taskpulse"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_anon_key = (
            _first_env(_k("SUPABASE_ANON_KEY"), "SUPABASE_ANON_KEY", default="") or ""
        ).strip()
        http_timeout_seconds = _env_number(_k("HTTP_TIMEOUT_SECONDS"), 10.0, low=1.0)
        signup_redirect_url = _env(_k("SIGNUP_REDIRECT_URL"), "").strip() or None

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskpulse"))
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)
        deadline_reminder_hour = _env_number(_k("DEADLINE_REMINDER_HOUR"), 9, low=0, high=23)
        daily_review_time = _env_clock(_k("DAILY_REVIEW_TIME"), dtime(21, 0))
        check_in_time = _env_clock(_k("CHECK_IN_TIME"), dtime(12, 0))
        notification_poll_seconds = _env_number(_k("NOTIFICATION_POLL_SECONDS"), 30.0, low=1.0)

        max_file_size_mb = _env_number(_k("MAX_FILE_SIZE_MB"), 10, low=1)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            http_timeout_seconds=http_timeout_seconds,
            signup_redirect_url=signup_redirect_url,
            data_dir=data_dir,
            session_path=session_path,
            notifications_enabled=notifications_enabled,
            deadline_reminder_hour=deadline_reminder_hour,
            daily_review_time=daily_review_time,
            check_in_time=check_in_time,
            notification_poll_seconds=notification_poll_seconds,
            max_file_size_mb=max_file_size_mb,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
