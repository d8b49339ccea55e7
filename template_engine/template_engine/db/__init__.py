"""PostgreSQL server access."""

from template_engine.db.database import DatabaseServer, PostgresServer, get_engine
from template_engine.db.sqlstate import driver_message, sqlstate_of

__all__ = [
    "DatabaseServer",
    "PostgresServer",
    "driver_message",
    "get_engine",
    "sqlstate_of",
]
