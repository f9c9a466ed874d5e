"""Scheduler loop: run named tasks on cron schedules.

Single daemon thread running several tasks on independent timers.
Each task computes its next fire time with :mod:`croniter` in the
business timezone.  Exceptions in one task do not block others.

Usage::

    loop = SchedulerLoop(clock, tasks, loop_interval=30, lock=lock)
    loop.start()
    ...
    loop.stop()
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from croniter import croniter

from remindkit.logging.context import tick_context

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from remindkit.app.shutdown import ShutdownCoordinator
    from remindkit.core.clock import BusinessClock
    from remindkit.db.advisory_lock import AdvisoryLock

log = logging.getLogger(__name__)

_DEFAULT_LOOP_INTERVAL = 30


class ScheduledTask:
    """A named callable with a cron schedule and its next fire time."""

    __slots__ = ("consecutive_failures", "cron", "func", "last_run", "name", "next_run")

    def __init__(
        self,
        name: str,
        cron: str,
        func: Callable[[], Any],
    ) -> None:
        self.name = name
        self.cron = cron
        self.func = func
        self.next_run: datetime | None = None
        self.last_run: datetime | None = None
        self.consecutive_failures = 0

    def schedule(self, now: datetime, *, immediately: bool = False) -> None:
        """Set the first fire time: *now* if *immediately*, else the next cron match."""
        self.next_run = now if immediately else croniter(self.cron, now).get_next(datetime)

    def is_due(self, now: datetime) -> bool:
        return self.next_run is not None and now >= self.next_run

    def advance(self, now: datetime) -> None:
        """Move to the first fire time after *now*; missed fires are not replayed."""
        self.next_run = croniter(self.cron, now).get_next(datetime)


class SchedulerLoop:
    """Daemon thread that fires :class:`ScheduledTask` objects when due.

    When an :class:`AdvisoryLock` is given, due tasks only run while this
    process holds it, so one replica at a time evaluates the rules.
    Correctness does not depend on it: the delivery ledger deduplicates
    across replicas.
    """

    # Advisory lock ID for leader election (arbitrary but stable)
    ADVISORY_LOCK_ID = 731_101

    def __init__(  # noqa: PLR0913
        self,
        clock: BusinessClock,
        tasks: list[ScheduledTask],
        *,
        loop_interval: int = _DEFAULT_LOOP_INTERVAL,
        lock: AdvisoryLock | None = None,
        catch_up_on_start: bool = True,
        stop_event: threading.Event | None = None,
        coordinator: ShutdownCoordinator | None = None,
        metrics: Any = None,
    ) -> None:
        self._clock = clock
        self._tasks = tasks
        self._loop_interval = loop_interval
        self._lock = lock
        self._catch_up = catch_up_on_start
        self._stop_event = stop_event or threading.Event()
        self._coordinator = coordinator
        self._metrics = metrics
        self._thread: threading.Thread | None = None
        self._consecutive_failures = 0

    @property
    def tasks(self) -> list[ScheduledTask]:
        return list(self._tasks)

    def start(self) -> None:
        """Start the background scheduler thread."""
        if not self._tasks:
            log.warning("No scheduled tasks enabled; scheduler not started")
            return
        if self._thread is not None and self._thread.is_alive():
            return

        now = self._clock.now()
        for task in self._tasks:
            task.schedule(now, immediately=self._catch_up)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="remindkit-scheduler",
            daemon=True,
        )
        self._thread.start()
        log.info(
            "Scheduler started (%s, loop=%ds)",
            ", ".join(f"{t.name}='{t.cron}'" for t in self._tasks),
            self._loop_interval,
        )

    def request_stop(self) -> None:
        """Ask the loop and any running tick to stop at the next entity boundary."""
        self._stop_event.set()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout if timeout is not None else self._loop_interval + 5)
            log.info("Scheduler stopped")
        if self._lock is not None:
            self._lock.close()

    def run_task(self, name: str) -> Any:  # noqa: ANN401
        """Run the task called *name* once, now, in the calling thread."""
        for task in self._tasks:
            if task.name == name:
                return self._execute(task, self._clock.now())
        msg = f"Unknown or disabled task '{name}'"
        raise KeyError(msg)

    # -- leader election -----------------------------------------------------

    @contextlib.contextmanager
    def _leadership(self) -> Iterator[bool]:
        """Hold the advisory lock for the duration of the block."""
        if self._lock is None:
            yield True
            return
        with self._lock.held() as acquired:
            yield acquired

    # -- loop ----------------------------------------------------------------

    def _run(self) -> None:
        """Main scheduler loop."""
        while not self._stop_event.is_set():
            try:
                self._run_due(self._clock.now())
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                log.exception(
                    "Scheduler cycle failed (consecutive: %d)",
                    self._consecutive_failures,
                )
                if self._metrics:
                    self._metrics.increment("remindkit_scheduler_errors_total")
                # Exponential backoff, capped at 8x the interval
                backoff = min(
                    self._loop_interval * (2**self._consecutive_failures),
                    self._loop_interval * 8,
                )
                self._stop_event.wait(timeout=backoff)
                continue
            self._stop_event.wait(timeout=self._loop_interval)

    def _run_due(self, now: datetime) -> None:
        due = [task for task in self._tasks if task.is_due(now)]
        if not due:
            return

        with self._leadership() as leader:
            if not leader:
                log.debug(
                    "Another instance holds the scheduler lock; skipping %s",
                    ", ".join(t.name for t in due),
                )
                for task in due:
                    task.advance(now)
                return

            for task in due:
                if self._stop_event.is_set():
                    return
                self._execute(task, now)

    def _execute(self, task: ScheduledTask, now: datetime) -> Any:  # noqa: ANN401
        task.advance(now)
        task.last_run = now
        started = time.monotonic()
        tracker = (
            self._coordinator.track(task.name)
            if self._coordinator is not None
            else contextlib.nullcontext()
        )
        with tick_context(task.name), tracker:
            try:
                result = task.func()
            except Exception:
                task.consecutive_failures += 1
                log.exception(
                    "Task %s failed (consecutive: %d); next run at %s",
                    task.name,
                    task.consecutive_failures,
                    task.next_run.isoformat() if task.next_run else "-",
                )
                if self._metrics:
                    self._metrics.increment(
                        "remindkit_task_errors_total",
                        labels={"task": task.name},
                    )
                return None

        task.consecutive_failures = 0
        if self._metrics:
            self._metrics.increment("remindkit_task_runs_total", labels={"task": task.name})
            self._metrics.set_gauge(
                "remindkit_task_last_success_timestamp",
                time.time(),
                labels={"task": task.name},
            )
        log.debug("Task %s completed in %.2fs", task.name, time.monotonic() - started)
        return result
