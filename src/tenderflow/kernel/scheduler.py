"""
Periodic background runner

Runs a job on a fixed interval in a daemon thread. A run that is still
active when the next tick comes due is never overlapped: the tick is skipped
and counted instead.
"""

import threading
from collections.abc import Callable
from typing import Any

from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.metrics import sweep_runs_skipped_total

logger = get_logger(__name__)


class PeriodicRunner:
    """
    Fixed-interval job runner with a non-overlap guard

    Example:
        runner = PeriodicRunner(flow.run_expiry_sweep, interval_seconds=3600)
        runner.start()
        ...
        runner.stop()
    """

    def __init__(
        self,
        job: Callable[[], Any],
        interval_seconds: float,
        name: str = "expiry-sweep",
    ) -> None:
        self.job = job
        self.interval_seconds = interval_seconds
        self.name = name
        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_result: Any = None
        self.last_error: str | None = None

    def run_once(self) -> bool:
        """
        Run the job now unless a run is already in progress

        Returns:
            True if the job ran, False if it was skipped
        """
        if not self._run_lock.acquire(blocking=False):
            sweep_runs_skipped_total.inc()
            logger.warning("Previous run still active, skipping", job=self.name)
            return False
        try:
            self.last_result = self.job()
            self.last_error = None
        except Exception as e:
            # keep the schedule alive; the failure is logged and exposed
            self.last_error = str(e)
            logger.exception("Scheduled job failed", job=self.name)
        finally:
            self._run_lock.release()
        return True

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_seconds)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Periodic runner started", job=self.name, interval_seconds=self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Periodic runner stopped", job=self.name)

    def wait(self, timeout: float) -> bool:
        """Block until stopped or timeout; True if stopped"""
        return self._stop.wait(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
