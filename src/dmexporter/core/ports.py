"""Port interfaces for adapters.

These protocols define the contracts that connection and log storage
adapters must implement. The engine depends only on these interfaces.
"""

from collections.abc import AsyncIterable, Sequence
from typing import Any, Protocol, runtime_checkable

from dmexporter.core.models import LogEntry


@runtime_checkable
class ConnectionPort(Protocol):
    """Port for a shared, read-only database connection.

    Adapters must tolerate concurrent use from several probes. The engine
    never opens or closes the underlying connection.
    Examples: SQLiteConnection, DBAPIConnectionPool.

    Attributes:
        source_id: Stable identity of the data source, used to namespace
            capability flags and cache keys.
    """

    source_id: str

    async def fetch_all(self, sql: str) -> Sequence[Sequence[Any]]:
        """Run a query and return all raw rows.

        Raises:
            ConnectivityError: If the connection is not available.
            Exception: Driver errors for invalid SQL or missing privileges.
        """
        ...

    async def ping(self) -> None:
        """Check that the connection is usable.

        Raises:
            ConnectivityError: If the connection is not available.
        """
        ...


@runtime_checkable
class LogStoragePort(Protocol):
    """Port for log notice storage.

    Examples: RingBufferLogStorage.
    """

    def write_sync(self, entry: LogEntry) -> None:
        """Write a log entry without blocking the caller."""
        ...

    def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[LogEntry]:
        """Read log entries since the given timestamp.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
            level: Optional level filter (case-insensitive).

        Returns:
            Async iterable of LogEntry objects ordered by timestamp ascending.
        """
        ...
