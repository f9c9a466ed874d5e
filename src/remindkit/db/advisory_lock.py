"""Cluster-wide advisory lock held on a connection of its own.

The scheduler uses it for leader election.  The lock connection is not
borrowed from the :class:`pypgkit.Database` pool, so holding the lock
never takes a pool slot away from the repositories and never leaves a
transaction open while a tick runs.

Usage::

    lock = AdvisoryLock(database_conninfo(settings.database), 731_101)
    with lock.held() as leader:
        if leader:
            ...
    lock.close()
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING

import psycopg

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

log = logging.getLogger(__name__)


class AdvisoryLock:
    """Session-level ``pg_try_advisory_lock`` on a dedicated autocommit connection.

    The connection is opened on first use and kept until :meth:`close`.
    A connection that fails is dropped; the server releases session
    locks of closed connections, and the next attempt reconnects.
    """

    def __init__(
        self,
        conninfo: str,
        lock_id: int,
        *,
        connect: Callable[..., psycopg.Connection] = psycopg.connect,
    ) -> None:
        self._conninfo = conninfo
        self._lock_id = lock_id
        self._connect = connect
        self._conn: psycopg.Connection | None = None
        self._mutex = threading.Lock()

    @property
    def lock_id(self) -> int:
        return self._lock_id

    def try_acquire(self) -> bool:
        """Return True if this process now holds the lock."""
        with self._mutex:
            try:
                conn = self._connection()
                row = conn.execute(
                    "SELECT pg_try_advisory_lock(%s)",
                    (self._lock_id,),
                ).fetchone()
            except psycopg.Error:
                log.debug("Advisory lock check failed, skipping this cycle", exc_info=True)
                self._discard()
                return False
        return bool(row and row[0])

    def release(self) -> None:
        with self._mutex:
            if self._conn is None:
                return
            try:
                self._conn.execute("SELECT pg_advisory_unlock(%s)", (self._lock_id,))
            except psycopg.Error:
                log.warning("Advisory unlock failed; dropping the lock connection")
                self._discard()

    @contextlib.contextmanager
    def held(self) -> Iterator[bool]:
        """Try the lock for the duration of the block; yields whether it was taken."""
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def close(self) -> None:
        with self._mutex:
            self._discard()

    def _connection(self) -> psycopg.Connection:
        if self._conn is None or self._conn.closed:
            self._conn = self._connect(self._conninfo, autocommit=True)
        return self._conn

    def _discard(self) -> None:
        if self._conn is not None:
            with contextlib.suppress(psycopg.Error):
                self._conn.close()
            self._conn = None
