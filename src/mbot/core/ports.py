# src/mbot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Job actions depend on these Protocols instead of the concrete TaskStore,
which keeps fakes easy to write in tests.
"""

from datetime import date
from typing import Any, Protocol

from ..tasks.task_models import TaskRecord


class TaskRepo(Protocol):
    def list(self) -> list[TaskRecord]: ...
    def get(self, task_id: int) -> TaskRecord: ...
    def create(self, text: str, *, due_date: date | None = None, due_time: str | None = None) -> TaskRecord: ...
    def update(
        self,
        task_id: int,
        *,
        text: str | None = None,
        done: bool | None = None,
        due_date: Any = ...,
        due_time: Any = ...,
    ) -> TaskRecord: ...
    def delete(self, task_id: int) -> None: ...
    def toggle(self, task_id: int) -> TaskRecord: ...
    def purge_done(self) -> int: ...
    def count(self) -> int: ...


class ReminderSink(Protocol):
    """Where due-task reminders go (log line, chat message, ...)."""

    def __call__(self, task: TaskRecord) -> None: ...
