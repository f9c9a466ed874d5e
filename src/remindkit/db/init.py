"""Database initialisation from remindkit configuration.

Usage::

    from remindkit.config import get_config
    from remindkit.db.init import init_database

    init_database(get_config().settings.database)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from psycopg.conninfo import make_conninfo
from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from remindkit.config.settings import DatabaseSettings

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    return DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def database_conninfo(settings: DatabaseSettings) -> str:
    """libpq connection string for connections opened outside the pool."""
    return make_conninfo(
        host=settings.host,
        port=settings.port,
        dbname=settings.database,
        user=settings.user,
        password=settings.password or None,
        sslmode=settings.sslmode,
        connect_timeout=max(1, int(settings.connection_timeout)),
        application_name="remindkit-scheduler-lock",
    )


def init_database(settings: DatabaseSettings, *, auto_setup: bool | None = None) -> Database:
    """Initialise the :class:`Database` singleton from config settings.

    Returns the existing instance when already initialised.  When
    *auto_setup* (default: ``settings.auto_setup``) is true the bundled
    ``schema.sql`` is applied.
    """
    if Database.is_initialized():
        log.debug("Database already initialised, returning existing instance")
        return Database.get_instance()

    apply_schema = settings.auto_setup if auto_setup is None else auto_setup

    log.info(
        "Connecting to PostgreSQL %s@%s:%s/%s (auto_setup=%s)",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
        apply_schema,
    )

    db = Database.init(
        config=_settings_to_config(settings),
        schema_path=SCHEMA_PATH if apply_schema else None,
        auto_setup=apply_schema,
        interactive=False,
    )

    log.info("Database ready")
    return db
