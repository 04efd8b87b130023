"""Per-resource mutexes serializing conflict-check-and-commit sequences."""

import logging
from contextlib import contextmanager
from datetime import date
from threading import Lock
from typing import Iterator

logger = logging.getLogger(__name__)

_registry_lock = Lock()
_locks: dict[str, tuple[Lock, int]] = {}


def instructor_key(instructor_id: int, day: date) -> str:
    return f'instructor:{instructor_id}:{day.isoformat()}'


def vehicle_key(vehicle_id: int, day: date) -> str:
    return f'vehicle:{vehicle_id}:{day.isoformat()}'


def session_form_key(form_id: int) -> str:
    return f'session-form:{form_id}'


def _checkout(key: str) -> Lock:
    with _registry_lock:
        lock, holders = _locks.get(key, (None, 0))
        if lock is None:
            lock = Lock()
        _locks[key] = (lock, holders + 1)
        return lock


def _checkin(key: str) -> None:
    with _registry_lock:
        lock, holders = _locks[key]
        if holders <= 1:
            del _locks[key]
        else:
            _locks[key] = (lock, holders - 1)


@contextmanager
def resource_locks(*keys: str | None) -> Iterator[None]:
    """Hold every named lock for the duration of the block.

    Keys are de-duplicated and taken in sorted order so two callers asking for
    overlapping key sets cannot deadlock. ``None`` entries are ignored, which
    lets callers pass an optional vehicle key unconditionally.
    """
    ordered = sorted({key for key in keys if key})
    acquired: list[tuple[str, Lock]] = []
    try:
        for key in ordered:
            lock = _checkout(key)
            lock.acquire()
            acquired.append((key, lock))
        logger.debug('Acquired resource locks: %s', ordered)
        yield
    finally:
        for key, lock in reversed(acquired):
            lock.release()
            _checkin(key)


def active_lock_count() -> int:
    with _registry_lock:
        return len(_locks)
