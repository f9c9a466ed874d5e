"""Read-only inspection subcommands.

Usage::

    remindkit -c config.yaml tasks
    remindkit -c config.yaml history <appointment-id>
    remindkit -c config.yaml history <tenant-id>:<YYYY-MM-DD>   # UTC end date
"""

from __future__ import annotations

import json
import sys


def run_tasks(config, args) -> None:
    """Print every enabled task with its cron expression and next fire time."""
    from remindkit.core.clock import BusinessClock
    from remindkit.services.scheduler import ScheduledTask

    clock = BusinessClock(config.settings.business.timezone)
    now = clock.now()
    for name, task in config.settings.scheduler.tasks.items():
        if not task.enabled:
            print(f"{name:<26} disabled")
            continue
        scheduled = ScheduledTask(name, task.cron, func=lambda: None)
        scheduled.schedule(now)
        print(f"{name:<26} {task.cron:<14} next: {scheduled.next_run.isoformat()}")


def run_history(config, args) -> None:
    """Print the delivery records for one entity as JSON."""
    from remindkit.db import init_database
    from remindkit.repositories.delivery import DeliveryRecordRepository

    db = init_database(config.settings.database)
    records = DeliveryRecordRepository(db).find_for_entity(args.entity_id)
    if not records:
        print(f"No deliveries recorded for {args.entity_id}", file=sys.stderr)
        sys.exit(1)

    print(
        json.dumps(
            [
                {
                    "entity_id": r.entity_id,
                    "rule_type": r.rule_type.value,
                    "sent_at": r.sent_at.isoformat(),
                }
                for r in records
            ],
            indent=2,
        ),
    )
