"""Run the scheduler daemon until SIGTERM/SIGINT."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_daemon(config, args) -> None:
    from remindkit.app import build_container
    from remindkit.app.shutdown import ShutdownCoordinator
    from remindkit.db import init_database

    settings = config.settings
    try:
        db = init_database(settings.database)
    except Exception as exc:
        if args.debug:
            raise
        print(f"remindkit: error: database initialisation failed: {exc}", file=sys.stderr)
        sys.exit(1)

    coordinator = ShutdownCoordinator(
        graceful_timeout=settings.scheduler.graceful_timeout_seconds,
    )
    container = build_container(db, settings, coordinator=coordinator)
    coordinator.on_shutdown(container.scheduler.request_stop)
    coordinator.register_signals()

    container.scheduler.start()
    log.info("remindkit daemon running")

    coordinator.wait()
    container.scheduler.stop(timeout=settings.scheduler.graceful_timeout_seconds)
    log.info("Final metrics:\n%s", container.metrics.export())
