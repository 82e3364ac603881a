"""Deferred calls and the queue that runs them."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable, Deque

from .lockutils import RWLock


class Job:
    """A callable bound to its arguments, run later."""

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._func = func
        self._args = args
        self._kwargs = kwargs

    def execute(self) -> None:
        self._func(*self._args, **self._kwargs)


class JobQueue:
    """Thread-safe FIFO of jobs, drained in batches."""

    def __init__(self) -> None:
        self._queue: Deque[Job] = deque()
        self._lock = RWLock()
        self._count_lock = threading.Lock()
        self._size = 0

    def push(self, job: Job) -> None:
        with self._count_lock:
            self._size += 1
        with self._lock.write_locked("JobQueue.push"):
            self._queue.append(job)

    def execute(self) -> int:
        """Run the jobs queued at the moment of the call; return how many ran."""
        with self._lock.write_locked("JobQueue.execute"):
            batch = list(self._queue)
            self._queue.clear()
        try:
            for job in batch:
                job.execute()
        finally:
            with self._count_lock:
                self._size -= len(batch)
        return len(batch)

    def pending(self) -> int:
        """Jobs pushed but not yet finished."""
        with self._count_lock:
            return self._size