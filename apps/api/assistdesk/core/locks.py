from __future__ import annotations

import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, TypeVar

from assistdesk.core.config import get_settings
from assistdesk.core.errors import TransientConflictError
from assistdesk.core.logging import emit

T = TypeVar("T")


class StaleWriteError(Exception):
    """A compare-and-set write matched no row; the caller should re-read and retry."""


class KeyedLocks:
    """One mutex per key while someone holds or waits on it; idle keys are dropped."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _release_entry(self, key: str) -> None:
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


def _is_busy(exc: sqlite3.OperationalError) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


def run_with_retry(op: str, fn: Callable[[], T], *, backoff_seconds: float = 0.05) -> T:
    """
    Run `fn` until it succeeds, retrying store contention (locked/busy sqlite)
    and lost compare-and-set races up to ADMISSION_RETRY_ATTEMPTS times.
    Domain errors raised by `fn` propagate untouched.
    """
    attempts = get_settings().admission_retry_attempts
    last: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except sqlite3.OperationalError as e:
            if not _is_busy(e):
                raise
            last = e
        except StaleWriteError as e:
            last = e
        emit("warning", "store.retry", f"{op} retry {attempt}/{attempts}", __name__, op=op, reason=str(last))
        if attempt < attempts:
            time.sleep(backoff_seconds * attempt)

    raise TransientConflictError(
        f"{op} lost a concurrent write race; retry later",
        {"op": op, "attempts": attempts, "reason": str(last)},
    )
