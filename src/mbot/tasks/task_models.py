# src/mbot/tasks/task_models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime

from ..errors import InvalidInput

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """
    One checklist item.

    The optional schedule tag (due_date / due_time) is the "YYYY-MM-DD [HH:MM] :"
    prefix of a checklist line. created_at is not persisted in the checklist text,
    so it does not take part in equality.
    """

    id: int
    text: str
    done: bool = False
    due_date: date | None = None
    due_time: str | None = None
    created_at: float = field(default=0.0, compare=False)

    def due_at(self) -> datetime | None:
        """Naive local datetime of a timed task, None for all-day or untagged ones."""
        if self.due_date is None or self.due_time is None:
            return None
        hh, mm = self.due_time.split(":")
        return datetime(self.due_date.year, self.due_date.month, self.due_date.day, int(hh), int(mm))

    @property
    def is_all_day(self) -> bool:
        return self.due_date is not None and self.due_time is None

    def reminder_key(self) -> str:
        if self.due_time is not None:
            return f"{self.due_date}-{self.due_time}-{self.text}"
        return f"{self.due_date}-allday-{self.text}"


def clean_text(text: str | None) -> str:
    """Trim task text and return it; raises InvalidInput if nothing is left."""
    # One task per checklist line: fold embedded line breaks.
    value = " ".join((text or "").splitlines()).strip()
    if not value:
        raise InvalidInput("task text must not be empty")
    return value


def check_schedule_tag(due_date: date | None, due_time: str | None) -> str | None:
    """Validate a (date, time) pair and return the normalized time."""
    if due_time is None:
        return None
    due_time = due_time.strip()
    if not _TIME_RE.match(due_time):
        raise InvalidInput(f"due_time must be HH:MM, got {due_time!r}")
    if due_date is None:
        raise InvalidInput("due_time requires due_date")
    return due_time
