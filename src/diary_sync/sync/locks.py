"""Per-date locking.

A date is the unit of consistency: a sync and a resolution of the same date
must never interleave, while different dates proceed in parallel.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator
from datetime import date


class DateLocks:
    """Hand out one re-entrant lock per date.

    Locks are created on first use and kept for the life of the process;
    the number of distinct diary dates is small.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[date, threading.RLock] = {}

    def _get(self, diary_date: date) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(diary_date)
            if lock is None:
                lock = self._locks[diary_date] = threading.RLock()
            return lock

    @contextlib.contextmanager
    def hold(self, diary_date: date) -> Iterator[None]:
        """Serialize the enclosed block against other holders of *diary_date*."""
        lock = self._get(diary_date)
        with lock:
            yield
