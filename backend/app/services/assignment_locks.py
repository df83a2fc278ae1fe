from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
import logging

from app.core.config import get_settings
from app.core.exceptions import PersistenceUnavailable

logger = logging.getLogger(__name__)


@dataclass
class _KeyedLock:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class AssignmentLocks:
    """Serializes mutations per duty assignment id.

    Entries are reference counted so the registry only holds ids that currently have a
    holder or a waiter.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _KeyedLock] = {}
        self._guard = Lock()

    def _checkout(self, key: str) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyedLock()
                self._locks[key] = entry
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _KeyedLock) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders <= 0:
                self._locks.pop(key, None)

    @contextmanager
    def hold(self, assignment_id: str, *, timeout: float | None = None) -> Iterator[None]:
        wait = get_settings().assignment_lock_timeout_seconds if timeout is None else timeout
        entry = self._checkout(assignment_id)
        acquired = entry.lock.acquire(timeout=wait)
        if not acquired:
            self._checkin(assignment_id, entry)
            logger.warning(
                "Timed out after %.1fs waiting for duty lock",
                wait,
                extra={"assignment_id": assignment_id},
            )
            raise PersistenceUnavailable("Duty is busy with another update, retry shortly")
        try:
            yield
        finally:
            entry.lock.release()
            self._checkin(assignment_id, entry)

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)


assignment_locks = AssignmentLocks()
