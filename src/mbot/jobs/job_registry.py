# src/mbot/jobs/job_registry.py

from __future__ import annotations

import logging
import threading
from datetime import tzinfo

from ..errors import Conflict, InvalidInput, NotFound
from .cron import parse_schedule
from .job_models import Job, JobAction

logger = logging.getLogger(__name__)


class JobRegistry:
    """
    Named job definitions, mutable at runtime.

    The scheduler takes a snapshot() once per tick, so additions and removals
    become visible at the next tick boundary.
    """

    def __init__(self, *, tz: tzinfo | None = None) -> None:
        self._tz = tz
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    def add(
        self,
        name: str,
        schedule: str,
        action: JobAction,
        *,
        action_ref: str | None = None,
    ) -> Job:
        name = (name or "").strip()
        if not name:
            raise InvalidInput("job name must not be empty")
        if not callable(action):
            raise InvalidInput(f"job {name!r}: action is not callable")
        trigger = parse_schedule(schedule, self._tz)

        job = Job(
            name=name,
            schedule=schedule.strip(),
            trigger=trigger,
            action=action,
            action_ref=action_ref,
        )
        with self._lock:
            if name in self._jobs:
                raise Conflict(f"job {name!r} already registered")
            self._jobs[name] = job

        logger.info("Job registered name=%s schedule=%r action=%s", name, job.schedule, action_ref)
        return job

    def remove(self, name: str) -> Job:
        with self._lock:
            job = self._jobs.pop(name, None)
        if job is None:
            raise NotFound(f"job {name!r} not found")
        logger.info("Job removed name=%s running=%s", name, job.running)
        return job

    def get(self, name: str) -> Job:
        with self._lock:
            return self._require(name)

    def list(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def snapshot(self) -> tuple[Job, ...]:
        with self._lock:
            return tuple(self._jobs.values())

    def _require(self, name: str) -> Job:
        # Caller holds self._lock.
        job = self._jobs.get(name)
        if job is None:
            raise NotFound(f"job {name!r} not found")
        return job

    @property
    def lock(self) -> threading.Lock:
        """Guards each job's disabled / next_fire_at pair; the scheduler holds it per job."""
        return self._lock

    def disable(self, name: str) -> Job:
        """Stop future firings. A run already in progress is allowed to finish."""
        with self._lock:
            job = self._require(name)
            job.disabled = True
            job.next_fire_at = None
        logger.info("Job disabled name=%s", name)
        return job

    def enable(self, name: str) -> Job:
        """Resume firing; the next instant is computed from the time of the next tick."""
        with self._lock:
            job = self._require(name)
            was_disabled = job.disabled
            job.disabled = False
            if was_disabled:
                job.next_fire_at = None
        if was_disabled:
            logger.info("Job enabled name=%s", name)
        return job
