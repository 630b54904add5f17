"""Connection adapters implementing ConnectionPort."""

from dmexporter.adapters.connection.dbapi import DBAPIConnectionPool
from dmexporter.adapters.connection.sqlite import SQLiteConnection

__all__ = [
    "DBAPIConnectionPool",
    "SQLiteConnection",
]
