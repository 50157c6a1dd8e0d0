"""Single-writer / multi-reader lock for the in-memory index."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
import threading
import time

from content_index.search.errors import LockTimeoutError


class ReadWriteLock:
    """Readers share the lock, a writer holds it exclusively.

    Waiting writers block new readers so a steady stream of queries cannot
    starve mutations. Not reentrant.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        self.timeout = timeout

    @contextmanager
    def read(self, timeout: float | None = None) -> Generator[None, None, None]:
        self._acquire_read(self._resolve(timeout))
        try:
            yield
        finally:
            self._release_read()

    @contextmanager
    def write(self, timeout: float | None = None) -> Generator[None, None, None]:
        self._acquire_write(self._resolve(timeout))
        try:
            yield
        finally:
            self._release_write()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer

    def _resolve(self, timeout: float | None) -> float | None:
        return self.timeout if timeout is None else timeout

    def _acquire_read(self, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._writer or self._writers_waiting:
                if not self._wait(deadline):
                    raise LockTimeoutError("Timed out waiting for index read lock")
            self._readers += 1

    def _release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def _acquire_write(self, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    if not self._wait(deadline):
                        raise LockTimeoutError("Timed out waiting for index write lock")
                self._writer = True
            finally:
                self._writers_waiting -= 1
                if not self._writer:
                    # a timed-out writer may have been holding readers back
                    self._cond.notify_all()

    def _release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    def _wait(self, deadline: float | None) -> bool:
        if deadline is None:
            self._cond.wait()
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        self._cond.wait(remaining)
        return True
