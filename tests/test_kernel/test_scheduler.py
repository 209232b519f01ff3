"""
Tests for the periodic runner

The expiry sweep must never overlap itself: a tick that comes due while a
run is active is skipped, and a failing run doesn't stop the schedule.
"""

import threading

from tenderflow.kernel.scheduler import PeriodicRunner


def test_run_once_records_result() -> None:
    runner = PeriodicRunner(lambda: "swept", interval_seconds=60)

    assert runner.run_once() is True
    assert runner.last_result == "swept"
    assert runner.last_error is None


def test_overlapping_run_is_skipped() -> None:
    started = threading.Event()
    release = threading.Event()
    calls: list[int] = []

    def slow_job() -> None:
        calls.append(1)
        started.set()
        release.wait(5)

    runner = PeriodicRunner(slow_job, interval_seconds=60)
    worker = threading.Thread(target=runner.run_once)
    worker.start()
    assert started.wait(5)

    # Second run while the first one still holds the lock
    assert runner.run_once() is False

    release.set()
    worker.join(5)
    assert len(calls) == 1
    assert runner.run_once() is True
    assert len(calls) == 2


def test_failing_job_is_recorded_not_raised() -> None:
    def broken() -> None:
        raise RuntimeError("database unavailable")

    runner = PeriodicRunner(broken, interval_seconds=60)

    assert runner.run_once() is True
    assert runner.last_error == "database unavailable"


def test_start_and_stop() -> None:
    ran = threading.Event()
    runner = PeriodicRunner(ran.set, interval_seconds=60, name="test-runner")

    runner.start()
    assert ran.wait(5)
    assert runner.running

    runner.stop(timeout=5)
    assert not runner.running
