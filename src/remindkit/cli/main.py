"""remindkit command-line entry point.

Usage::

    remindkit -c /etc/remindkit/config.yaml
    remindkit -c config.yaml --validate-only
    remindkit -c config.yaml run
    remindkit -c config.yaml tick appointment_reminders
    remindkit -c config.yaml tasks
    remindkit -c config.yaml history <entity-id>
    remindkit -c config.yaml db status
    python -m remindkit -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)

TASK_NAMES = (
    "appointment_reminders",
    "trial_expiration",
    "subscription_pre_expire",
    "subscription_grace",
    "trial_reminders",
)


def _get_version() -> str:
    from remindkit import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remindkit",
        description="remindkit: multi-tenant appointment and subscription notification scheduler",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run the scheduler daemon (default)")

    tick_parser = subparsers.add_parser("tick", help="Run one task immediately and exit")
    tick_parser.add_argument("task", choices=TASK_NAMES, help="Task to run")

    subparsers.add_parser("tasks", help="List scheduled tasks and their next run")

    history_parser = subparsers.add_parser("history", help="Show delivery records of an entity")
    history_parser.add_argument(
        "entity_id",
        help="Appointment id, or '<tenant_id>:<YYYY-MM-DD>' (UTC date of the subscription end)",
    )

    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and schema")
    db_sub.add_parser("migrate", help="Apply the bundled schema")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"remindkit: error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        from remindkit.config import ConfigValidationError, RemindkitConfig

        config = RemindkitConfig(
            config_file=str(config_path),
            schema_file="bundled",
        )
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from remindkit.logging import configure_logging

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("remindkit").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command

    if command == "db":
        from remindkit.cli.commands.db import run_db

        run_db(config, args)
    elif command == "tick":
        from remindkit.cli.commands.tick import run_tick

        run_tick(config, args)
    elif command == "tasks":
        from remindkit.cli.commands.inspect import run_tasks

        run_tasks(config, args)
    elif command == "history":
        from remindkit.cli.commands.inspect import run_history

        run_history(config, args)
    else:
        from remindkit.cli.commands.run import run_daemon

        _print_settings_summary(config)
        run_daemon(config, args)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    enabled = [name for name, task in s.scheduler.tasks.items() if task.enabled]
    channels = [
        name
        for name, on in (("whatsapp", s.whatsapp.enabled), ("email", s.smtp.enabled))
        if on
    ]
    print(f"remindkit {_get_version()}")
    print(f"  config:    {config.data.get('_source', '?')}")
    print(f"  timezone:  {s.business.timezone}")
    db = s.database
    print(f"  database:  {db.user}@{db.host}:{db.port}/{db.database}")
    print(f"  tasks:     {', '.join(enabled) or '(none)'}")
    print(f"  channels:  {', '.join(channels) or '(none)'}")
    print(f"  reminders: {', '.join(s.reminders.rules)} (±{s.reminders.tolerance_minutes} min)")
