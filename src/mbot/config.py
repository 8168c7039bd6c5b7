# src/mbot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Job definitions live in a small JSON file, read once at startup.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidInput

logger = logging.getLogger(__name__)

ENV_PREFIX = "MBOT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class JobDefinition:
    name: str
    schedule: str
    action: str


# Without a jobs file: check reminders every minute.
DEFAULT_JOBS: tuple[JobDefinition, ...] = (JobDefinition(name="remind", schedule="* * * * *", action="remind"),)


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Checklist ----
    tasks_path: Path
    watch_file: bool

    # ---- Scheduler ----
    jobs_path: Path | None
    timezone: str | None
    tick_seconds: float
    action_timeout: float | None

    # ---- Reminders ----
    remind_window_seconds: int
    remind_all_day_at: str

    # ---- API ----
    api_enabled: bool
    api_host: str
    api_port: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "mbot") or "mbot"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/mbot")) or Path(".local/mbot")

        tasks_path = _env_path(_k("TASKS_PATH"), Path("schedules/schedule.md")) or Path("schedules/schedule.md")
        watch_file = _env_bool(_k("WATCH_FILE"), False)

        jobs_path = _env_path(_k("JOBS_PATH"), None)
        timezone = _env(_k("TIMEZONE"), "").strip() or None
        tick_seconds = _env_float(_k("TICK_SECONDS"), 1.0)
        action_timeout = _env_float(_k("ACTION_TIMEOUT"), 0.0) or None

        remind_window_seconds = _env_int(_k("REMIND_WINDOW_SECONDS"), 60)
        remind_all_day_at = _env(_k("REMIND_ALL_DAY_AT"), "09:00").strip() or "09:00"

        api_enabled = _env_bool(_k("API_ENABLED"), True)
        api_host = _env(_k("API_HOST"), "127.0.0.1")
        api_port = _env_int(_k("API_PORT"), 8000)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_path=tasks_path,
            watch_file=watch_file,
            jobs_path=jobs_path,
            timezone=timezone,
            tick_seconds=tick_seconds,
            action_timeout=action_timeout,
            remind_window_seconds=remind_window_seconds,
            remind_all_day_at=remind_all_day_at,
            api_enabled=api_enabled,
            api_host=api_host,
            api_port=api_port,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS


def resolve_timezone(name: str | None) -> tzinfo | None:
    """None means "system local time"."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput(f"unknown timezone {name!r}") from e


def load_job_definitions(path: Path | None) -> list[JobDefinition]:
    """
    Read job definitions from a JSON list:

        [{"name": "remind", "schedule": "* * * * *", "action": "remind"}, ...]

    No path (or a missing file) gives the default reminder job.
    """
    if path is None:
        return list(DEFAULT_JOBS)
    path = Path(path)
    if not path.exists():
        logger.warning("Jobs file %s not found; using default jobs", path)
        return list(DEFAULT_JOBS)

    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidInput(f"cannot read jobs file {path}: {e}") from e

    if not isinstance(data, list):
        raise InvalidInput(f"jobs file {path} must contain a JSON list")

    out: list[JobDefinition] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise InvalidInput(f"jobs file {path}: entry #{i} is not an object")
        try:
            out.append(
                JobDefinition(
                    name=str(item["name"]),
                    schedule=str(item["schedule"]),
                    action=str(item.get("action") or item["name"]),
                )
            )
        except KeyError as e:
            raise InvalidInput(f"jobs file {path}: entry #{i} is missing {e.args[0]!r}") from e
    logger.info("Loaded %s job definition(s) from %s", len(out), path)
    return out
