"""Database layer package.

Public re-exports so callers can write::

    from inkfinder.db import get_connection, init_db
    from inkfinder.db import SqliteGateway, persist_results
"""

from inkfinder.db.connection import get_connection
from inkfinder.db.gateway import PersistenceGateway, SqliteGateway, persist_results
from inkfinder.db.migrations import init_db

__all__ = [
    "get_connection",
    "init_db",
    "PersistenceGateway",
    "SqliteGateway",
    "persist_results",
]
