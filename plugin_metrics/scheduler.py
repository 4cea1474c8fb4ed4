"""
Jittered fixed-rate scheduler for the metrics cycle.

The first run is delayed by a random amount so that many servers started at
the same moment do not all report at once; after that the task runs every
INTERVAL seconds measured from the first run, regardless of how long each
run takes.
"""

import logging
import random
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger("plugin-metrics")

# Seconds
INITIAL_DELAY_RANGE = (180.0, 360.0)
INTERVAL = 1800.0


class SchedulerStateError(RuntimeError):
    """Raised when schedule() is called twice or after shutdown()."""


class MetricsScheduler:
    """Runs one task on a dedicated daemon thread at a fixed rate.

    Usage:
        scheduler = MetricsScheduler(is_enabled=lambda: config.enabled)
        scheduler.schedule(service.collect_and_send)
        ...
        scheduler.shutdown()
    """

    def __init__(
        self,
        is_enabled: Callable[[], bool],
        initial_delay_range: tuple[float, float] = INITIAL_DELAY_RANGE,
        interval: float = INTERVAL,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "metrics-scheduler",
        log: Optional[logging.Logger] = None,
    ):
        """Initialize the scheduler.

        Args:
            is_enabled: Checked before every run; a False result skips that run.
            initial_delay_range: (low, high) bounds of the random first delay.
            interval: Seconds between successive runs.
            rng: Random source for the initial delay.
            clock: Monotonic clock used to compute fire times.
            name: Worker thread name.
            log: Logger for task failures.
        """
        low, high = initial_delay_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid initial delay range: {initial_delay_range}")
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")

        self.is_enabled = is_enabled
        self.initial_delay_range = (low, high)
        self.interval = interval
        self._rng = rng or random.Random()
        self._clock = clock
        self._name = name
        self._log = log or logger

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.initial_delay: Optional[float] = None
        self.runs = 0

    def schedule(self, task: Callable[[], object]) -> float:
        """Start running task on the worker thread.

        Returns:
            The randomly chosen initial delay in seconds.

        Raises:
            SchedulerStateError: If already scheduled or shut down.
        """
        with self._lock:
            if self._stop_event.is_set():
                raise SchedulerStateError("Scheduler has been shut down")
            if self._thread is not None:
                raise SchedulerStateError("A task is already scheduled")

            low, high = self.initial_delay_range
            self.initial_delay = self._rng.uniform(low, high)
            first_run = self._clock() + self.initial_delay

            self._thread = threading.Thread(
                target=self._run_loop,
                args=(task, first_run),
                name=self._name,
                daemon=True,
            )
            self._thread.start()

        self._log.debug(
            f"Metrics scheduled: first run in {self.initial_delay:.0f}s, "
            f"then every {self.interval:.0f}s"
        )
        return self.initial_delay

    def _run_loop(self, task: Callable[[], object], next_run: float) -> None:
        while not self._stop_event.is_set():
            remaining = next_run - self._clock()
            if remaining > 0 and self._stop_event.wait(remaining):
                break
            if self._stop_event.is_set():
                break
            self._tick(task)
            # Fixed rate: late runs are followed immediately by the next due run
            next_run += self.interval

    def _tick(self, task: Callable[[], object]) -> None:
        try:
            if not self.is_enabled():
                self._log.debug("Metrics disabled, skipping scheduled run")
                return
            self.runs += 1
            task()
        except Exception:
            self._log.warning("Scheduled metrics task failed", exc_info=True)

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop_event.is_set()
        )

    @property
    def is_shutdown(self) -> bool:
        return self._stop_event.is_set()

    def shutdown(self) -> None:
        """Stop future runs.

        Returns immediately; a run already in progress is allowed to finish
        on the worker thread. Safe to call more than once, or without ever
        having scheduled anything.
        """
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        self._log.debug("Metrics scheduler stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the worker thread to exit (mainly for tests)."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)
