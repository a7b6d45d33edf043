"""ChangeWatcher — tells readers when the block store changed.

Writers append to the ``change_log`` table in the same transaction as
the change itself. A watcher remembers the last change id it saw and
fires its callbacks ("something changed, re-fetch") when a newer one
appears, so other processes sharing the database file converge too.
"""

import logging
import sqlite3
import threading
from typing import Callable, Optional

from stone_yard.config import Config
from stone_yard.database.models import ChangeEvent
from stone_yard.database.repository import Repository

logger = logging.getLogger(__name__)


class ChangeWatcherError(Exception):
    """Base exception for change notification."""


class ChangeWatcher:
    """Polls the change log and notifies listeners."""

    def __init__(self, repo: Repository,
                 interval: Optional[float] = None):
        self.repo = repo
        self.interval = interval if interval is not None else Config.CHANGE_POLL_SECONDS
        self._last_seen = repo.latest_change_id()
        self._callbacks: list[Callable[[list[ChangeEvent]], None]] = []
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def last_seen(self) -> int:
        return self._last_seen

    def add_callback(self, callback: Callable[[list[ChangeEvent]], None]):
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[list[ChangeEvent]], None]):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def poll(self) -> list[ChangeEvent]:
        """Check once. Returns the new events, oldest first."""
        try:
            events = self.repo.get_changes_since(self._last_seen)
        except sqlite3.Error as exc:
            raise ChangeWatcherError(f"Could not read change log: {exc}") from exc
        if not events:
            return []
        self._last_seen = events[-1].id
        logger.debug("%d block changes since last poll", len(events))
        for callback in list(self._callbacks):
            try:
                callback(events)
            except Exception:
                logger.exception("Change callback %r failed", callback)
        return events

    def run(self, stop_event: threading.Event):
        """Poll until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                self.poll()
            except ChangeWatcherError as exc:
                logger.warning("%s", exc)
            stop_event.wait(self.interval)

    # ── Background thread ───────────────────────────────────────

    def start(self):
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, args=(self._stop,),
            name="stone-yard-change-watcher", daemon=True,
        )
        self._thread.start()
        logger.info("Change watcher started (every %.1fs)", self.interval)

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Change watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
