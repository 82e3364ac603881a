"""Reader/writer lock used to guard shared server state."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class RWLock:
    """A lock that admits many readers or a single writer at a time."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    def acquire_read(self) -> None:
        """Block until no writer holds the lock, then take a read share."""
        with self._cond:
            self._cond.wait_for(lambda: not self._writer)
            self._readers += 1

    def release_read(self) -> None:
        """Give back a read share."""
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("read lock released without being held")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        """Block until the lock is free, then take it exclusively."""
        with self._cond:
            self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True

    def release_write(self) -> None:
        """Give back exclusive ownership."""
        with self._cond:
            if not self._writer:
                raise RuntimeError("write lock released without being held")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self, name: str = "") -> Iterator[None]:
        """Hold a read share for the duration of the block; ``name`` labels the site."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self, name: str = "") -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block; ``name`` labels the site."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()