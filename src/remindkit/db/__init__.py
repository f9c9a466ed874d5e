"""Database subsystem for remindkit.

Public API::

    from remindkit.db import init_database, storage_errors, UnitOfWork
"""

from remindkit.db.advisory_lock import AdvisoryLock
from remindkit.db.errors import storage_errors
from remindkit.db.init import database_conninfo, init_database
from remindkit.db.unit_of_work import UnitOfWork

__all__ = [
    "AdvisoryLock",
    "UnitOfWork",
    "database_conninfo",
    "init_database",
    "storage_errors",
]
