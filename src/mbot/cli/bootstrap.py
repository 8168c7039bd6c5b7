# src/mbot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- loads the checklist into the TaskStore and turns on write-through,
- registers the configured jobs,
- wires everything into AppState.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import get_settings, load_job_definitions, resolve_timezone
from ..core.state import AppState
from ..jobs.actions import catalog
from ..jobs.job_registry import JobRegistry
from ..jobs.job_scheduler import Scheduler
from ..tasks.file_watch import FileWatcher
from ..tasks.markdown_sync import MarkdownSync
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.tasks_path).parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    A checklist that fails to parse aborts startup: running with an empty store
    would overwrite the file on the first mutation.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    tz = resolve_timezone(getattr(settings, "timezone", None))

    store = TaskStore()
    sync = MarkdownSync(settings.tasks_path, store)
    # Attach first so the initial load is written back with ids on every line.
    sync.attach()
    sync.reload()

    registry = JobRegistry(tz=tz)
    scheduler = Scheduler(
        registry,
        tick_seconds=float(getattr(settings, "tick_seconds", 1.0)),
        action_timeout=getattr(settings, "action_timeout", None),
    )

    state = AppState(
        settings=settings,
        store=store,
        sync=sync,
        registry=registry,
        scheduler=scheduler,
    )

    for definition in load_job_definitions(getattr(settings, "jobs_path", None)):
        action = catalog.build(state, definition.action)
        registry.add(definition.name, definition.schedule, action, action_ref=definition.action)

    if getattr(settings, "watch_file", False):
        state.watcher = FileWatcher(sync)

    return state


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.watcher is not None:
        try:
            state.watcher.stop()
        except Exception:
            logger.exception("Failed to stop file watcher.")

    try:
        state.sync.close()
    except Exception:
        logger.exception("Failed to close checklist writer.")

    try:
        state.sync.flush()
    except Exception:
        logger.exception("Final checklist flush failed.")
