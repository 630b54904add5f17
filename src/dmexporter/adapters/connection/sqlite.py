"""SQLite connection adapter backed by aiosqlite.

Useful for local development and tests: a SQLite file can be seeded with
views shaped like the DM dynamic views the probes read.
"""

import asyncio
import logging
import sqlite3
from collections.abc import Sequence
from typing import Any

import aiosqlite

from dmexporter.core.errors import ConnectivityError

logger = logging.getLogger(__name__)


class SQLiteConnection:
    """Shared read-only connection to a SQLite database.

    The connection is opened lazily on first use and kept open until
    ``close``. An optional schema script runs once right after opening.

    Args:
        db_path: Database file path, or ``:memory:``.
        schema: Optional SQL script run once after the connection opens.
        source_id: Data source identity (defaults to ``sqlite:<db_path>``).
    """

    def __init__(
        self,
        db_path: str,
        schema: str | None = None,
        source_id: str | None = None,
    ) -> None:
        self._db_path = db_path
        self._schema = schema
        self.source_id = source_id or f"sqlite:{db_path}"
        self._init_lock: asyncio.Lock | None = None
        self._conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the open lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    async def _ensure_open(self) -> aiosqlite.Connection:
        """Open the connection and apply the schema once."""
        if self._conn is not None:
            return self._conn
        async with self._get_lock():
            if self._conn is not None:
                return self._conn
            try:
                conn = await aiosqlite.connect(self._db_path)
                if self._schema:
                    await conn.executescript(self._schema)
                    await conn.commit()
            except sqlite3.OperationalError as e:
                raise ConnectivityError(
                    f"cannot open SQLite database {self._db_path!r}: {e}"
                ) from e
            logger.info("Opened SQLite database", extra={"source_id": self.source_id})
            self._conn = conn
            return conn

    async def fetch_all(self, sql: str) -> Sequence[Sequence[Any]]:
        """Run a query and return all rows."""
        conn = await self._ensure_open()
        async with conn.execute(sql) as cursor:
            return list(await cursor.fetchall())

    async def ping(self) -> None:
        """Check that the database answers a trivial query."""
        await self.fetch_all("SELECT 1")

    async def close(self) -> None:
        """Close the connection; the next query reopens it."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            self._init_lock = None
