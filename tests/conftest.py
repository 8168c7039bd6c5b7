# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from mbot.cli.bootstrap import create_initial_state, shutdown_state
from mbot.core.state import AppState
from mbot.jobs.job_registry import JobRegistry
from mbot.jobs.job_scheduler import Scheduler

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="mbot-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        tasks_path=tmp_path / "schedules" / "schedule.md",
        watch_file=False,
        jobs_path=None,
        timezone="UTC",
        tick_seconds=0.05,
        action_timeout=None,
        remind_window_seconds=60,
        remind_all_day_at="09:00",
        api_enabled=False,
        api_host="127.0.0.1",
        api_port=0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace):
    """
    AppState wired exactly like the CLI does it (real store, real checklist file).
    """
    app_state: AppState = create_initial_state(settings=settings)
    yield app_state
    shutdown_state(app_state)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def registry() -> JobRegistry:
    return JobRegistry(tz=timezone.utc)


@pytest.fixture()
def scheduler(registry: JobRegistry, clock: FakeClock) -> Scheduler:
    return Scheduler(registry, clock=clock, tick_seconds=0.05)
