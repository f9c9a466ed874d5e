"""Run a single scheduled task once, now, and print what it did."""

from __future__ import annotations

import json
import sys

from remindkit.services.engine import TickSummary


def run_tick(config, args) -> None:
    from remindkit.app import build_container
    from remindkit.db import init_database

    db = init_database(config.settings.database)
    container = build_container(db, config.settings)

    try:
        result = container.scheduler.run_task(args.task)
    except KeyError:
        print(f"remindkit: error: task '{args.task}' is disabled", file=sys.stderr)
        sys.exit(1)

    if isinstance(result, TickSummary):
        print(json.dumps(_summary_to_dict(result), indent=2, default=str))
    elif result is not None:
        print(json.dumps({"task": args.task, "result": result}, indent=2))
    print(container.metrics.export(), end="")

    errors = container.metrics.get("remindkit_task_errors_total", labels={"task": args.task})
    if errors:
        sys.exit(1)


def _summary_to_dict(summary: TickSummary) -> dict:
    return {
        "task": summary.task,
        "started_at": summary.started_at.isoformat(),
        "interrupted": summary.interrupted,
        "rules": [
            {
                "rule_type": r.rule_type,
                "candidates": r.candidates,
                "query_failed": r.query_failed,
                "outcomes": {str(k): v for k, v in r.outcomes.items()},
            }
            for r in summary.rules
        ],
    }
