# src/mbot/tasks/task_store.py

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from types import MappingProxyType
from typing import Any

from ..errors import InvalidInput, NotFound
from .task_models import TaskRecord, check_schedule_tag, clean_text

logger = logging.getLogger(__name__)

ChangeListener = Callable[[int, tuple[TaskRecord, ...]], None]
RebuildFn = Callable[[int, list[TaskRecord]], Iterable[TaskRecord]]

_UNSET: Any = object()


class TaskStore:
    """
    In-memory, authoritative task list.

    Thread-safety:
    - every mutation runs under one lock, so mutations never interleave
    - the ordered mapping is copy-on-write: a mutation builds a new mapping and
      publishes it with a single assignment, readers just grab the current one
      and never see a half-applied change

    The change listener (checklist write-through) is notified under the mutation
    lock with (version, snapshot), so notifications arrive in mutation order.
    It must only enqueue work.
    """

    def __init__(
        self,
        records: Iterable[TaskRecord] = (),
        *,
        on_change: ChangeListener | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._on_change = on_change
        self._records: Mapping[int, TaskRecord] = MappingProxyType({})
        self._next_id = 1
        self._version = 0
        mapping = self._index(records)
        if mapping:
            self._records = MappingProxyType(mapping)
            self._next_id = max(mapping) + 1
        logger.info("TaskStore ready total=%s next_id=%s", len(self._records), self._next_id)

    # ---- low-level helpers ----

    def set_listener(self, on_change: ChangeListener | None) -> None:
        with self._lock:
            self._on_change = on_change

    @staticmethod
    def _index(records: Iterable[TaskRecord]) -> dict[int, TaskRecord]:
        mapping: dict[int, TaskRecord] = {}
        for rec in records:
            if rec.id in mapping:
                raise InvalidInput(f"duplicate task id {rec.id}")
            mapping[rec.id] = rec
        return mapping

    def _publish(self, mapping: dict[int, TaskRecord]) -> None:
        # Caller holds self._lock.
        self._records = MappingProxyType(mapping)
        self._version += 1
        if self._on_change is None:
            return
        try:
            self._on_change(self._version, tuple(mapping.values()))
        except Exception:
            logger.exception("TaskStore change listener failed version=%s", self._version)

    def _require(self, task_id: int) -> TaskRecord:
        rec = self._records.get(int(task_id))
        if rec is None:
            raise NotFound(f"task {task_id} not found")
        return rec

    # ---- reads ----

    @property
    def version(self) -> int:
        return self._version

    @property
    def next_id(self) -> int:
        return self._next_id

    def count(self) -> int:
        return len(self._records)

    def list(self) -> list[TaskRecord]:
        """Snapshot of all records in creation order."""
        return list(self._records.values())

    def get(self, task_id: int) -> TaskRecord:
        return self._require(task_id)

    def snapshot(self) -> tuple[int, tuple[TaskRecord, ...]]:
        """(version, records) taken together; used for explicit flushes."""
        with self._lock:
            return self._version, tuple(self._records.values())

    # ---- mutations ----

    def create(
        self,
        text: str,
        *,
        due_date: date | None = None,
        due_time: str | None = None,
    ) -> TaskRecord:
        text = clean_text(text)
        due_time = check_schedule_tag(due_date, due_time)

        with self._lock:
            rec = TaskRecord(
                id=self._next_id,
                text=text,
                done=False,
                due_date=due_date,
                due_time=due_time,
                created_at=self._clock(),
            )
            self._next_id += 1
            mapping = dict(self._records)
            mapping[rec.id] = rec
            self._publish(mapping)

        logger.debug("Task created id=%s due=%s %s", rec.id, due_date, due_time)
        return rec

    def update(
        self,
        task_id: int,
        *,
        text: str | None = None,
        done: bool | None = None,
        due_date: date | None = _UNSET,
        due_time: str | None = _UNSET,
    ) -> TaskRecord:
        """
        Partial update: arguments left out keep their current value.

        due_date / due_time accept None to clear the schedule tag.
        """
        if text is not None:
            text = clean_text(text)

        with self._lock:
            cur = self._require(task_id)
            new_date = cur.due_date if due_date is _UNSET else due_date
            new_time = cur.due_time if due_time is _UNSET else due_time
            if new_date is None and due_time is _UNSET:
                new_time = None
            new_time = check_schedule_tag(new_date, new_time)

            rec = TaskRecord(
                id=cur.id,
                text=cur.text if text is None else text,
                done=cur.done if done is None else bool(done),
                due_date=new_date,
                due_time=new_time,
                created_at=cur.created_at,
            )
            mapping = dict(self._records)
            mapping[rec.id] = rec
            self._publish(mapping)

        logger.debug("Task updated id=%s done=%s", rec.id, rec.done)
        return rec

    def toggle(self, task_id: int) -> TaskRecord:
        with self._lock:
            cur = self._require(task_id)
            rec = TaskRecord(
                id=cur.id,
                text=cur.text,
                done=not cur.done,
                due_date=cur.due_date,
                due_time=cur.due_time,
                created_at=cur.created_at,
            )
            mapping = dict(self._records)
            mapping[rec.id] = rec
            self._publish(mapping)

        logger.debug("Task toggled id=%s done=%s", rec.id, rec.done)
        return rec

    def delete(self, task_id: int) -> None:
        with self._lock:
            cur = self._require(task_id)
            mapping = dict(self._records)
            del mapping[cur.id]
            self._publish(mapping)

        logger.debug("Task deleted id=%s", task_id)

    def purge_done(self) -> int:
        """Delete every completed task in a single mutation. Returns how many went away."""
        with self._lock:
            mapping = {k: v for k, v in self._records.items() if not v.done}
            removed = len(self._records) - len(mapping)
            if removed:
                self._publish(mapping)
        if removed:
            logger.info("Purged %s completed task(s)", removed)
        return removed

    def replace_all(self, records: Iterable[TaskRecord]) -> None:
        """
        Swap the whole list at once (checklist reload).

        Either every record is installed or, on a duplicate id, nothing changes.
        next_id only ever moves forward, so ids stay unique for the store's lifetime.
        """
        records = list(records)
        self.rebuild(lambda next_id, current: records)

    def rebuild(self, build: RebuildFn) -> int:
        """
        Swap the whole list for build(next_id, current_records), called under the lock.

        build numbers id-less records from next_id, so no create() can take
        the same id between building and publishing. If build raises, nothing changes.
        Returns the new record count.
        """
        with self._lock:
            mapping = self._index(build(self._next_id, list(self._records.values())))
            if mapping:
                self._next_id = max(self._next_id, max(mapping) + 1)
            self._publish(mapping)

        logger.info("TaskStore replaced total=%s next_id=%s", len(mapping), self._next_id)
        return len(mapping)
