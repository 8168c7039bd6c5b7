# src/mbot/jobs/actions.py

from __future__ import annotations

"""
Built-in job actions.

Jobs in the config file and in POST /api/jobs name their action by reference
("remind", "reload", ...). The catalog turns a reference into a zero-arg
callable bound to the running AppState.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, time as dtime
from typing import TYPE_CHECKING

from ..config import resolve_timezone
from ..core.ports import ReminderSink, TaskRepo
from ..errors import InvalidInput
from ..tasks.task_models import TaskRecord
from .job_models import JobAction

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)
reminder_logger = logging.getLogger("mbot.reminder")

ActionFactory = Callable[["AppState"], JobAction]


def log_reminder(task: TaskRecord) -> None:
    reminder_logger.info(
        "REMINDER: %s | Scheduled: %s %s",
        task.text,
        task.due_date,
        task.due_time or "all-day",
    )


class Reminder:
    """
    Announce open tasks whose scheduled time has come, once per task.

    - timed task: due when its datetime falls in [now, now + window)
    - all-day task: due on its date once all_day_at has been reached

    A task is remembered by date/time/text, so editing the text or moving the
    date makes it eligible again.
    """

    def __init__(
        self,
        tasks: TaskRepo,
        *,
        window_seconds: int = 60,
        all_day_at: dtime = dtime(9, 0),
        clock: Callable[[], datetime] = datetime.now,
        sink: ReminderSink = log_reminder,
    ) -> None:
        self._tasks = tasks
        self._window = max(1, int(window_seconds))
        self._all_day_at = all_day_at
        self._clock = clock
        self._sink = sink
        self._lock = threading.Lock()
        self._reminded: set[str] = set()

    def is_due(self, task: TaskRecord, now: datetime) -> bool:
        if task.done or task.due_date is None:
            return False
        due = task.due_at()
        if due is not None:
            return 0 <= (due - now).total_seconds() < self._window
        return task.due_date == now.date() and now.time() >= self._all_day_at

    def __call__(self) -> list[TaskRecord]:
        now = self._clock()
        sent: list[TaskRecord] = []
        with self._lock:
            for task in self._tasks.list():
                key = task.reminder_key()
                if key in self._reminded or not self.is_due(task, now):
                    continue
                self._sink(task)
                self._reminded.add(key)
                sent.append(task)
        if sent:
            logger.debug("Sent %s reminder(s)", len(sent))
        return sent


class ActionCatalog:
    """Named action factories (remind, reload, ...)."""

    def __init__(self) -> None:
        self._factories: dict[str, ActionFactory] = {}
        self._help: dict[str, str] = {}

    def register(self, name: str, factory: ActionFactory, help_text: str) -> None:
        key = name.lower()
        self._factories[key] = factory
        self._help[key] = help_text

    def names(self) -> list[str]:
        return sorted(self._factories)

    def describe(self) -> dict[str, str]:
        return dict(sorted(self._help.items()))

    def build(self, state: AppState, ref: str) -> JobAction:
        factory = self._factories.get((ref or "").strip().lower())
        if factory is None:
            known = ", ".join(self.names())
            raise InvalidInput(f"unknown action {ref!r} (known: {known})")
        return factory(state)


catalog = ActionCatalog()


def _local_clock(state: AppState) -> Callable[[], datetime]:
    tz = resolve_timezone(getattr(state.settings, "timezone", None))
    if tz is None:
        return datetime.now
    return lambda: datetime.now(tz).replace(tzinfo=None)


def _parse_hhmm(raw: str) -> dtime:
    try:
        hh, mm = raw.split(":")
        return dtime(int(hh), int(mm))
    except ValueError as e:
        raise InvalidInput(f"expected HH:MM, got {raw!r}") from e


def make_remind(state: AppState) -> JobAction:
    return Reminder(
        state.store,
        window_seconds=int(getattr(state.settings, "remind_window_seconds", 60)),
        all_day_at=_parse_hhmm(str(getattr(state.settings, "remind_all_day_at", "09:00"))),
        clock=_local_clock(state),
    )


def make_reload(state: AppState) -> JobAction:
    return state.sync.reload


def make_purge_done(state: AppState) -> JobAction:
    return state.store.purge_done


def make_flush(state: AppState) -> JobAction:
    return state.sync.flush


catalog.register("remind", make_remind, "Log a reminder for open tasks whose scheduled time has come.")
catalog.register("reload", make_reload, "Reload the checklist file from disk (picks up manual edits).")
catalog.register("purge_done", make_purge_done, "Delete completed tasks.")
catalog.register("flush", make_flush, "Write the checklist file now.")
