"""Process-local write locks scoped to one learner's schedule for one exam."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Tuple

_LockKey = Tuple[str, int]


class ScheduleLockRegistry:
    """Hands out one re-entrant lock per (user, exam) so writers serialise."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[_LockKey, threading.RLock] = {}

    def lock_for(self, user_id: str, exam_id: int) -> threading.RLock:
        key = (user_id, exam_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, user_id: str, exam_id: int) -> Generator[None, None, None]:
        lock = self.lock_for(user_id, exam_id)
        with lock:
            yield


schedule_locks = ScheduleLockRegistry()

__all__ = ["ScheduleLockRegistry", "schedule_locks"]
