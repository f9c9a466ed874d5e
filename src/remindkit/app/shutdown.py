"""Graceful shutdown coordinator.

Tracks in-flight ticks and lets them finish (up to a timeout) before
the daemon exits.

Usage::

    coordinator = ShutdownCoordinator(graceful_timeout=30)
    coordinator.on_shutdown(scheduler.request_stop)
    coordinator.register_signals()

    with coordinator.track("appointment_reminders"):
        engine.run_tick(...)

    coordinator.wait()  # main thread blocks until shutdown completes
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Coordinates graceful shutdown by tracking in-flight ticks."""

    def __init__(self, graceful_timeout: int = 30) -> None:
        self._graceful_timeout = graceful_timeout
        self._shutdown_flag = threading.Event()
        self._complete = threading.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._in_flight = 0
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_flag.is_set()

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return self._in_flight

    def on_shutdown(self, callback: Callable[[], None]) -> None:
        """Register *callback* to run when shutdown begins, before draining."""
        self._callbacks.append(callback)

    @contextmanager
    def track(self, name: str) -> Generator[None, None, None]:
        """Track an in-flight tick.

        A tick that starts during shutdown still runs; it will see the
        stop request between entities.
        """
        if self._shutdown_flag.is_set():
            log.warning("Tick '%s' starting during shutdown", name)

        with self._lock:
            self._in_flight += 1

        try:
            yield
        finally:
            with self._done:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._done.notify_all()

    def initiate(self) -> None:
        """Begin graceful shutdown and wait for in-flight ticks to drain."""
        if self._shutdown_flag.is_set():
            return

        self._shutdown_flag.set()
        log.info("Graceful shutdown initiated")

        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                log.exception("Shutdown callback %r failed", callback)

        with self._done:
            deadline = time.monotonic() + self._graceful_timeout
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.warning(
                        "Shutdown timeout expired with %d ticks in flight",
                        self._in_flight,
                    )
                    break
                self._done.wait(timeout=remaining)

            if self._in_flight == 0:
                log.info("All in-flight ticks completed")

        self._complete.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`initiate` has finished; returns False on timeout."""
        return self._complete.wait(timeout=timeout)

    def register_signals(self) -> None:
        """Register SIGTERM and SIGINT handlers.  Must be called from the main thread."""
        try:
            signal.signal(signal.SIGTERM, self._signal_handler)
            signal.signal(signal.SIGINT, self._signal_handler)
        except (ValueError, OSError):
            log.debug("Could not register signal handlers (not main thread)")

    def _signal_handler(self, signum: int, frame) -> None:
        sig_name = signal.Signals(signum).name
        log.info("Received %s, initiating graceful shutdown", sig_name)
        # The handler must not block.
        threading.Thread(
            target=self.initiate,
            name="shutdown-coordinator",
            daemon=True,
        ).start()
