# src/mbot/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..jobs.job_registry import JobRegistry
from ..jobs.job_scheduler import Scheduler
from ..tasks.file_watch import FileWatcher
from ..tasks.markdown_sync import MarkdownSync
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """Everything the API and the job actions share. Built by cli.bootstrap."""

    # Settings (or a SimpleNamespace with the same attributes in tests).
    settings: Any

    store: TaskStore
    sync: MarkdownSync
    registry: JobRegistry
    scheduler: Scheduler

    watcher: FileWatcher | None = None
