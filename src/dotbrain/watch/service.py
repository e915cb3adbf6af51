"""Debounced inbox change notification built on watchdog."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from dotbrain.ingestion.discovery import should_include

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0
MISSING_FOLDER_RETRIES = 3
MISSING_FOLDER_RETRY_SECONDS = 10.0


class InboxWatcher:
    """Invoke ``on_change`` once the inbox has been quiet for ``debounce_seconds``.

    When the inbox does not exist yet the watcher retries a few times instead
    of creating it.
    """

    def __init__(
        self,
        inbox: Path,
        on_change: Callable[[], None],
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        retry_seconds: float = MISSING_FOLDER_RETRY_SECONDS,
        max_retries: int = MISSING_FOLDER_RETRIES,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.inbox = inbox
        self.on_change = on_change
        self.debounce_seconds = max(0.0, debounce_seconds)
        self.retry_seconds = retry_seconds
        self.max_retries = max_retries
        self._observer_factory = observer_factory
        self._observer: Optional[BaseObserver] = None
        self._timer: Optional[threading.Timer] = None
        self._retry_timer: Optional[threading.Timer] = None
        self._retries = 0
        self._lock = threading.Lock()
        self.handler = _InboxEventHandler(self)

    def __enter__(self) -> "InboxWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> bool:
        """Start watching; return False when the inbox is missing and a retry is scheduled."""
        with self._lock:
            if self._observer is not None:
                return True
            if not self.inbox.is_dir():
                self._schedule_retry()
                return False
            self._retries = 0
            observer = self._observer_factory()
            observer.schedule(self.handler, str(self.inbox), recursive=False)
            observer.start()
            self._observer = observer
        LOGGER.info("Watching %s", self.inbox)
        return True

    def stop(self) -> None:
        with self._lock:
            for timer in (self._timer, self._retry_timer):
                if timer is not None:
                    timer.cancel()
            self._timer = None
            self._retry_timer = None
            observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
            LOGGER.info("Stopped watching %s", self.inbox)

    def notify(self) -> None:
        """Restart the debounce timer; the callback fires once events stop."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        try:
            self.on_change()
        except Exception:
            LOGGER.exception("Inbox change handler failed")

    def _schedule_retry(self) -> None:
        if self._retries >= self.max_retries:
            LOGGER.warning(
                "Giving up on %s after %d attempts; inbox does not exist",
                self.inbox,
                self.max_retries,
            )
            return
        self._retries += 1
        LOGGER.info(
            "Inbox %s missing; retrying in %.0fs (%d/%d)",
            self.inbox,
            self.retry_seconds,
            self._retries,
            self.max_retries,
        )
        self._retry_timer = threading.Timer(self.retry_seconds, self.start)
        self._retry_timer.daemon = True
        self._retry_timer.start()


class _InboxEventHandler(FileSystemEventHandler):
    """Forward relevant inbox events to the watcher's debounce timer."""

    def __init__(self, watcher: InboxWatcher) -> None:
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in {"opened", "closed_no_write"}:
            return
        name = Path(str(event.src_path)).name
        if not should_include(name):
            return
        self._watcher.notify()


__all__ = ["InboxWatcher", "DEFAULT_DEBOUNCE_SECONDS"]
