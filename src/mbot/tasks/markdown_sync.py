# src/mbot/tasks/markdown_sync.py

"""
Checklist file <-> TaskStore.

Line format (anything else in the file is ignored):

    - [ ] Buy milk <!-- id:1 -->
    - [x] 2024-05-01 09:00 : Pay rent <!-- id:2 -->
    - [ ] 2024-05-02 : Call mom

- "[ ]" open, "[x]" / "[X]" done
- optional schedule tag "YYYY-MM-DD [HH:MM] :" before the text
- optional trailing id marker (an HTML comment, so it stays invisible in rendered markdown);
  lines without one get a fresh id on load and keep it once the file is rewritten
- a leading backslash marks literal text: "- [ ] \\2024-05-01 : not a tag" has no
  schedule tag, and text that itself starts with a backslash is written with two

load()/render() are pure. MarkdownSync owns the file: reload on request,
write-through on every store mutation from a single writer thread.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
import threading
import time
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from ..errors import ParseError, PersistenceError
from .task_models import TaskRecord
from .task_store import TaskStore

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^- \[([ xX])\](.*)$")
_ID_RE = re.compile(r"\s*<!--\s*id:(\d+)\s*-->\s*$")
_ID_PREFIX_RE = re.compile(r"<!--\s*id\b")
_TAG_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:\s+(\d{1,2}:\d{2}))?\s*:\s*(.*)$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_ESCAPE = "\\"


@dataclasses.dataclass(slots=True)
class _ParsedLine:
    line_no: int
    task_id: int | None
    text: str
    done: bool
    due_date: date | None
    due_time: str | None


def _parse_line(line_no: int, line: str) -> _ParsedLine | None:
    m = _LINE_RE.match(line.rstrip("\r\n"))
    if not m:
        return None

    done = m.group(1) in ("x", "X")
    body = m.group(2).strip()
    if not body:
        return None

    task_id: int | None = None
    id_m = _ID_RE.search(body)
    if id_m:
        task_id = int(id_m.group(1))
        body = body[: id_m.start()].strip()
    elif _ID_PREFIX_RE.search(body):
        raise ParseError("truncated id marker", line_no=line_no)

    due_date: date | None = None
    due_time: str | None = None
    tag_m = None
    if body.startswith(_ESCAPE):
        body = body[len(_ESCAPE) :].strip()
    else:
        tag_m = _TAG_RE.match(body)
    if tag_m:
        try:
            due_date = date.fromisoformat(tag_m.group(1))
        except ValueError:
            raise ParseError(f"invalid date {tag_m.group(1)!r}", line_no=line_no) from None
        if tag_m.group(2) is not None:
            due_time = tag_m.group(2).zfill(5)
            if not _TIME_RE.match(due_time):
                raise ParseError(f"invalid time {tag_m.group(2)!r}", line_no=line_no)
        body = tag_m.group(3).strip()

    if not body:
        # An id or a schedule tag with nothing after it.
        raise ParseError("task text is missing", line_no=line_no)

    return _ParsedLine(
        line_no=line_no,
        task_id=task_id,
        text=body,
        done=done,
        due_date=due_date,
        due_time=due_time,
    )


def load(source_text: str, *, id_floor: int = 1, now: float | None = None) -> list[TaskRecord]:
    """
    Parse checklist text into records, in file order.

    Lines without an id are numbered after both the largest explicit id and id_floor,
    so a reload never hands out an id the store already used.
    Raises ParseError on malformed task lines or duplicate ids.
    """
    parsed: list[_ParsedLine] = []
    seen: set[int] = set()
    for line_no, line in enumerate(source_text.splitlines(), start=1):
        item = _parse_line(line_no, line)
        if item is None:
            continue
        if item.task_id is not None:
            if item.task_id in seen:
                raise ParseError(f"duplicate id {item.task_id}", line_no=line_no)
            seen.add(item.task_id)
        parsed.append(item)

    next_id = max([id_floor, *(i + 1 for i in seen)])
    created_at = time.time() if now is None else now

    records: list[TaskRecord] = []
    for item in parsed:
        task_id = item.task_id
        if task_id is None:
            task_id = next_id
            next_id += 1
        records.append(
            TaskRecord(
                id=task_id,
                text=item.text,
                done=item.done,
                due_date=item.due_date,
                due_time=item.due_time,
                created_at=created_at,
            )
        )
    return records


def render_line(rec: TaskRecord) -> str:
    mark = "x" if rec.done else " "
    tag = ""
    if rec.due_date is not None:
        tag = f"{rec.due_date.isoformat()} {rec.due_time} : " if rec.due_time else f"{rec.due_date.isoformat()} : "
    elif rec.text.startswith(_ESCAPE) or _TAG_RE.match(rec.text):
        # Untagged text that would read back as a tag (or as an escape).
        tag = _ESCAPE
    return f"- [{mark}] {tag}{rec.text} <!-- id:{rec.id} -->"


def render(records: Iterable[TaskRecord]) -> str:
    lines = [render_line(r) for r in records]
    return "\n".join(lines) + "\n" if lines else ""


class MarkdownSync:
    """
    Owns the checklist file for one TaskStore.

    - reload(): all-or-nothing; on ParseError the store is left untouched
    - write-through: attach() makes every store mutation schedule a write;
      the writer thread coalesces bursts and writes only the newest snapshot
    - write failures are logged and kept in last_error, the in-memory store stays authoritative
    """

    def __init__(self, path: str | Path, store: TaskStore, *, encoding: str = "utf-8") -> None:
        self._path = Path(path)
        self._store = store
        self._encoding = encoding

        self._write_lock = threading.Lock()
        self._cond = threading.Condition()
        self._pending: tuple[int, tuple[TaskRecord, ...]] | None = None
        self._written_version = -1
        self._closed = False
        self._thread: threading.Thread | None = None

        self._last_text: str | None = None
        self.last_error: PersistenceError | None = None

    @property
    def path(self) -> Path:
        return self._path

    # ---- write-through ----

    def attach(self) -> None:
        """Start the writer thread and subscribe to store mutations."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._writer_loop, name="mbot-checklist-writer", daemon=True)
        self._thread.start()
        self._store.set_listener(self._on_change)
        logger.info("Checklist write-through attached path=%s", self._path)

    def close(self, timeout: float | None = 10.0) -> None:
        """Detach from the store, write whatever is pending and stop the writer."""
        self._store.set_listener(None)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _on_change(self, version: int, records: tuple[TaskRecord, ...]) -> None:
        with self._cond:
            if self._pending is None or version > self._pending[0]:
                self._pending = (version, records)
            self._cond.notify()

    def _writer_loop(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                version, records = self._pending
                self._pending = None
            try:
                self._write(version, records)
            except PersistenceError:
                logger.exception("Checklist write failed version=%s path=%s", version, self._path)

    def _write(self, version: int, records: Iterable[TaskRecord]) -> None:
        with self._write_lock:
            if version <= self._written_version:
                return
            text = render(records)
            tmp = self._path.with_name(self._path.name + ".tmp")
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(text, encoding=self._encoding)
                os.replace(tmp, self._path)
            except OSError as e:
                self.last_error = PersistenceError(f"cannot write {self._path}: {e}")
                raise self.last_error from e
            self._written_version = version
            self._last_text = text
            self.last_error = None
            logger.debug("Checklist written version=%s path=%s", version, self._path)

    def flush(self) -> None:
        """Write the current store state now. Raises PersistenceError."""
        version, records = self._store.snapshot()
        self._write(version, records)

    # ---- reload ----

    def reload(self) -> int:
        """
        Replace the store's content with the file's content.

        Returns the number of records loaded. A missing file is created from the
        current store instead. ParseError / PersistenceError leave the store untouched.
        """
        try:
            text = self._path.read_text(encoding=self._encoding)
        except FileNotFoundError:
            logger.info("Checklist %s does not exist yet; writing current tasks", self._path)
            self.flush()
            return self._store.count()
        except OSError as e:
            raise PersistenceError(f"cannot read {self._path}: {e}") from e

        def build(next_id: int, current: list[TaskRecord]) -> list[TaskRecord]:
            # Runs under the store lock: fresh ids cannot collide with a concurrent create().
            existing = {r.id: r for r in current}
            records = [
                dataclasses.replace(r, created_at=existing[r.id].created_at) if r.id in existing else r
                for r in load(text, id_floor=next_id)
            ]
            self._last_text = text
            return records

        try:
            count = self._store.rebuild(build)
        except ParseError:
            logger.exception("Checklist reload aborted path=%s", self._path)
            raise

        logger.info("Checklist reloaded path=%s tasks=%s", self._path, count)
        return count

    def is_own_text(self, text: str) -> bool:
        """True if text is exactly what this process last wrote or loaded."""
        return self._last_text is not None and text == self._last_text
