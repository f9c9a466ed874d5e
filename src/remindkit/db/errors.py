"""Translate driver connectivity failures into :class:`RepositoryUnavailable`."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import psycopg

from remindkit.core.errors import RepositoryUnavailable

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)


@contextlib.contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise connection-level psycopg errors as :class:`RepositoryUnavailable`.

    ``psycopg_pool.PoolTimeout`` subclasses :class:`psycopg.OperationalError`
    and is covered too.  Query errors (bad SQL, constraint violations)
    propagate unchanged.
    """
    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        log.error("Storage unavailable during %s: %s", operation, exc)
        msg = f"{operation} failed: {exc}"
        raise RepositoryUnavailable(msg) from exc
