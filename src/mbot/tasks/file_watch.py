# src/mbot/tasks/file_watch.py

from __future__ import annotations

import logging
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import MbotError
from .markdown_sync import MarkdownSync

logger = logging.getLogger(__name__)


class _ChecklistEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        self._watcher = watcher

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.handle_change(str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors and our own writer replace the file via rename.
        if not event.is_directory:
            self._watcher.handle_change(str(getattr(event, "dest_path", event.src_path)))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.handle_change(str(event.src_path))


class FileWatcher:
    """
    Reload the checklist when someone edits it by hand.

    Our own write-through output is recognised by content and ignored.
    A failing reload is logged; the store keeps its previous state.
    """

    def __init__(self, sync: MarkdownSync) -> None:
        self._sync = sync
        self._target = sync.path.resolve()
        self._observer: Observer | None = None

    def start(self) -> None:
        if self._observer is not None:
            return
        self._target.parent.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(_ChecklistEventHandler(self), str(self._target.parent), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching checklist %s", self._target)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None

    def handle_change(self, src_path: str) -> bool:
        """Returns True if the change triggered a reload."""
        if Path(src_path).resolve() != self._target:
            return False
        try:
            text = self._target.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Checklist vanished while reading %s", self._target, exc_info=True)
            return False
        if self._sync.is_own_text(text):
            return False

        logger.info("Checklist changed on disk, reloading %s", self._target)
        try:
            self._sync.reload()
        except MbotError:
            logger.warning("Reload after external edit failed; keeping current tasks", exc_info=True)
            return False
        return True
