"""
Tests for run_tasks.
"""

from __future__ import annotations

import threading
import time

import pytest

from fabisearch.parallel import run_tasks


class TestRunTasks:
    @pytest.mark.parametrize("n_jobs", [1, 3, -1])
    def test_results_follow_task_order(self, n_jobs):
        def slow_square(x):
            time.sleep(0.01 * (5 - x))
            return x * x

        assert run_tasks(slow_square, [(x,) for x in range(5)], n_jobs) == [0, 1, 4, 9, 16]

    def test_empty_tasks(self):
        assert run_tasks(lambda x: x, [], n_jobs=4) == []

    def test_worker_error_is_raised(self):
        def fail_on_two(x):
            if x == 2:
                raise RuntimeError("fit failed")
            return x

        with pytest.raises(RuntimeError, match="fit failed"):
            run_tasks(fail_on_two, [(x,) for x in range(4)], n_jobs=2)

    def test_queued_tasks_are_cancelled_after_error(self):
        started = []
        lock = threading.Lock()

        def task(x):
            with lock:
                started.append(x)
            if x == 0:
                raise RuntimeError("fit failed")
            time.sleep(0.2)
            return x

        t = time.monotonic()
        with pytest.raises(RuntimeError):
            run_tasks(task, [(x,) for x in range(8)], n_jobs=2)

        assert len(started) < 8
        assert time.monotonic() - t < 0.2 * 8 / 2

    def test_progress_bar(self):
        assert run_tasks(lambda x: x + 1, [(1,), (2,)], n_jobs=1, desc="Testing") == [2, 3]
