"""Worker thread management with per-thread identifiers."""

from __future__ import annotations

import itertools
import threading
from typing import Callable, List, Optional

from .send_buffer import get_send_buffer_manager

_local = threading.local()
_ids = itertools.count(1)
_ids_lock = threading.Lock()


def current_thread_id() -> int:
    """Identifier of the calling worker thread; 0 for threads not started here."""
    return getattr(_local, "thread_id", 0)


def _assign_thread_id() -> None:
    with _ids_lock:
        _local.thread_id = next(_ids)


class ThreadManager:
    """Starts worker threads and waits for them."""

    _instance: Optional["ThreadManager"] = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    @classmethod
    def instance(cls) -> "ThreadManager":
        """The shared manager."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def create_thread(self, callback: Callable[[], object]) -> threading.Thread:
        """Run ``callback`` on a new worker thread."""

        def run() -> None:
            _assign_thread_id()
            try:
                callback()
            finally:
                get_send_buffer_manager().release_thread_chunk()

        thread = threading.Thread(target=run, daemon=True)
        with self._lock:
            self._threads.append(thread)
        thread.start()
        return thread

    def join_all(self) -> None:
        """Wait for every started thread to finish."""
        with self._lock:
            threads = list(self._threads)
            self._threads.clear()
        for thread in threads:
            thread.join()