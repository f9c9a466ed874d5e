"""Database management subcommands."""

from __future__ import annotations

import sys

_TABLES = ("tenants", "appointments", "automation_settings", "delivery_records")


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    elif args.db_command == "migrate":
        _db_migrate(config)
    else:
        print("usage: remindkit db {status,migrate}", file=sys.stderr)
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and which tables exist."""
    from remindkit.db import init_database

    try:
        db = init_database(config.settings.database, auto_setup=False)
        db.fetch_value("SELECT 1")
        rows = db.fetch_all(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ANY(%s)",
            (list(_TABLES),),
            as_dict=True,
        )
    except Exception as exc:
        print(f"Database unreachable: {exc}", file=sys.stderr)
        sys.exit(1)

    present = {r["table_name"] for r in rows}
    print("Database connection OK")
    for table in _TABLES:
        print(f"  {table:<22} {'present' if table in present else 'MISSING'}")
    if present != set(_TABLES):
        sys.exit(1)


def _db_migrate(config) -> None:
    """Apply the bundled schema (idempotent)."""
    from remindkit.db import init_database

    try:
        init_database(config.settings.database, auto_setup=True)
    except Exception as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(1)
    print("Schema applied")
