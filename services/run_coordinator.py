"""Single-slot mutual exclusion for sync workflows."""

import logging
import threading
from contextlib import contextmanager

from crawlers.errors import RunInProgressError

LOGGER = logging.getLogger(__name__)


class RunCoordinator:
    """Non-blocking run slot shared by every workflow of a process.

    When a ``store`` and ``lock_key`` are given, a PostgreSQL session
    advisory lock is taken as well so separate processes against the same
    database also exclude each other.
    """

    def __init__(self, store=None, lock_key=None):
        self.store = store
        self.lock_key = lock_key
        self._lock = threading.Lock()
        self.active_run = None

    @contextmanager
    def try_acquire(self, name):
        if not self._lock.acquire(blocking=False):
            LOGGER.warning("Run rejected, slot busy requested=%s active=%s", name, self.active_run)
            raise RunInProgressError(f"{self.active_run} is already running")

        lock_conn = None
        try:
            if self.store is not None and self.lock_key is not None:
                lock_conn = self.store.try_acquire_run_lock(self.lock_key)
                if lock_conn is None:
                    LOGGER.warning("Run rejected, database lock held elsewhere requested=%s key=%s", name, self.lock_key)
                    raise RunInProgressError(f"another process holds run lock {self.lock_key}")
            self.active_run = name
            yield self
        finally:
            self.active_run = None
            if lock_conn is not None:
                self.store.release_run_lock(lock_conn, self.lock_key)
            self._lock.release()

    @property
    def busy(self):
        return self._lock.locked()
