"""Unit of Work: several statements on one transaction.

Repository methods each borrow their own pooled connection, so a
tenant deactivation and its lifecycle-state update would otherwise
commit separately.

Usage::

    with UnitOfWork(db) as uow:
        uow.execute("UPDATE tenants SET is_active = false WHERE id = %s", (tid,))
        uow.execute("UPDATE tenants SET last_notification_state = %s ...", (...))
        # COMMIT on clean exit; ROLLBACK on exception
"""

from __future__ import annotations

from typing import Any, Self

from psycopg.rows import dict_row
from pypgkit import Database


class UnitOfWork:
    """Transaction-scoped helper around :meth:`Database.transaction`."""

    def __init__(self, database: Database | None = None) -> None:
        self._db = database or Database.get_instance()
        self._conn = None

    def __enter__(self) -> Self:
        self._tx = self._db.transaction()
        self._conn = self._tx.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._tx.__exit__(exc_type, exc_val, exc_tb)
        self._conn = None

    def execute(self, sql: str, params: tuple | list | None = None) -> int:
        """Execute a statement and return its rowcount."""
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def fetch_one(
        self,
        sql: str,
        params: tuple | list | None = None,
    ) -> dict[str, Any] | None:
        """Execute a query and return the first row as a dict, or None.

        Use ``SELECT ... FOR UPDATE`` to hold the row until commit.
        """
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql, params)
            return cur.fetchone()
