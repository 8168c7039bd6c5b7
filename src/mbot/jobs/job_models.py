# src/mbot/jobs/job_models.py

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from apscheduler.triggers.cron import CronTrigger

JobAction = Callable[[], Any] | Callable[[], Awaitable[Any]]


class JobState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    DISABLED = "disabled"


@dataclass(slots=True, eq=False)
class Job:
    """
    A recurring action bound to a cron expression.

    Identity matters: a removed job and a re-added one with the same name are
    different objects, each with its own running slot.

    running / disabled are tracked separately so that disabling a job mid-run
    lets the current invocation finish without ever allowing a second one.
    """

    name: str
    schedule: str
    trigger: CronTrigger
    action: JobAction
    action_ref: str | None = None

    disabled: bool = False
    running: bool = False

    next_fire_at: datetime | None = None
    last_fired_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None

    run_count: int = 0
    error_count: int = 0
    skipped_count: int = 0

    @property
    def state(self) -> JobState:
        if self.disabled:
            return JobState.DISABLED
        if self.running:
            return JobState.RUNNING
        return JobState.IDLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schedule": self.schedule,
            "action": self.action_ref,
            "state": self.state.value,
            "running": self.running,
            "next_fire_at": self.next_fire_at.isoformat() if self.next_fire_at else None,
            "last_fired_at": self.last_fired_at.isoformat() if self.last_fired_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_error": self.last_error,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
        }
