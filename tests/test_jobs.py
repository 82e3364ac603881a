import threading

import pytest

from bsserver.jobs import Job, JobQueue


def test_job_passes_arguments():
    seen = []
    Job(lambda a, b=None: seen.append((a, b)), 1, b="x").execute()
    assert seen == [(1, "x")]


def test_job_calls_bound_method():
    class Target:
        def __init__(self):
            self.values = []

        def add(self, v):
            self.values.append(v)

    target = Target()
    Job(target.add, "v").execute()
    assert target.values == ["v"]


def test_queue_runs_in_fifo_order():
    queue = JobQueue()
    seen = []
    for i in range(5):
        queue.push(Job(seen.append, i))
    assert queue.pending() == 5
    assert queue.execute() == 5
    assert seen == list(range(5))
    assert queue.pending() == 0


def test_jobs_pushed_during_execute_wait_for_next_round():
    queue = JobQueue()
    seen = []

    def first():
        seen.append("first")
        queue.push(Job(seen.append, "second"))

    queue.push(Job(first))
    assert queue.execute() == 1
    assert seen == ["first"]
    assert queue.pending() == 1
    queue.execute()
    assert seen == ["first", "second"]


def test_empty_execute_runs_nothing():
    assert JobQueue().execute() == 0


def test_failing_job_propagates_and_count_settles():
    queue = JobQueue()

    def boom():
        raise KeyError("bad")

    queue.push(Job(boom))
    with pytest.raises(KeyError):
        queue.execute()
    assert queue.pending() == 0


def test_concurrent_pushes_all_run():
    queue = JobQueue()
    seen = []
    lock = threading.Lock()

    def record(v):
        with lock:
            seen.append(v)

    threads = [
        threading.Thread(target=lambda k=k: [queue.push(Job(record, (k, i))) for i in range(50)])
        for k in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    queue.execute()
    assert sorted(seen) == sorted((k, i) for k in range(4) for i in range(50))