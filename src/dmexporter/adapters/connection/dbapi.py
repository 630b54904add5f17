"""Connection pool for PEP 249 drivers such as ``dmPython``.

Blocking driver calls run in worker threads via ``asyncio.to_thread`` so
probes can share the pool concurrently. Idle connections are reused
most-recently-released first.

A caller whose deadline expires cancels the awaiting task. The pool then
asks the driver to abort the statement (``cursor.cancel()`` or
``connection.cancel()`` where available) and discards the connection once
the worker thread returns.
"""

import asyncio
import logging
import queue
import threading
from collections.abc import Callable, Sequence
from typing import Any

from dmexporter.core.errors import ConnectivityError

logger = logging.getLogger(__name__)

PING_SQL = "SELECT 1 FROM DUAL"
DEFAULT_ACQUIRE_TIMEOUT = 1.0


class _Call:
    """One statement in flight, shared by the awaiting task and its worker."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.conn: Any = None
        self.cursor: Any = None
        self.abandoned = False


class DBAPIConnectionPool:
    """Bounded pool of DB-API connections.

    Args:
        connect: Zero-argument factory returning a new DB-API connection,
            e.g. ``functools.partial(dmPython.connect, user=..., ...)``.
        source_id: Stable identity of the data source.
        max_size: Maximum number of open connections.
        ping_sql: Statement used by ``ping``.
        acquire_timeout: Seconds to wait for a free connection before
            failing with ``ConnectivityError``. Keep it below the query
            timeout so a starved probe fails fast instead of timing out.
        disconnect_errors: Driver exception types meaning the connection is
            gone, typically ``(dmPython.OperationalError,)``. When omitted,
            errors whose class is named ``OperationalError`` count as
            disconnects.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        source_id: str,
        max_size: int = 4,
        ping_sql: str = PING_SQL,
        acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT,
        disconnect_errors: tuple[type[BaseException], ...] | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if acquire_timeout <= 0:
            raise ValueError("acquire_timeout must be positive")
        self._connect = connect
        self.source_id = source_id
        self._ping_sql = ping_sql
        self._acquire_timeout = acquire_timeout
        self._disconnect_errors = disconnect_errors
        self._idle: queue.LifoQueue[Any] = queue.LifoQueue()
        self._slots = threading.BoundedSemaphore(max_size)
        self._lock = threading.Lock()
        self._open = 0
        self._closed = False

    @property
    def open_connections(self) -> int:
        with self._lock:
            return self._open

    def _acquire(self) -> Any:
        """Take an idle connection or open a new one (blocking)."""
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise ConnectivityError(
                f"no free connection to {self.source_id} "
                f"within {self._acquire_timeout}s"
            )
        try:
            if self._closed:
                raise ConnectivityError("connection pool is closed")
            try:
                return self._idle.get_nowait()
            except queue.Empty:
                pass
            try:
                conn = self._connect()
            except Exception as e:
                raise ConnectivityError(
                    f"cannot connect to {self.source_id}: {e}"
                ) from e
            with self._lock:
                self._open += 1
            return conn
        except BaseException:
            self._slots.release()
            raise

    def _release(self, conn: Any, broken: bool) -> None:
        try:
            if broken or self._closed:
                self._discard(conn)
            else:
                self._idle.put(conn)
        finally:
            self._slots.release()

    def _discard(self, conn: Any) -> None:
        with self._lock:
            self._open -= 1
        try:
            conn.close()
        except Exception as e:
            logger.warning(
                "Error closing connection: %s", e, extra={"source_id": self.source_id}
            )

    def _is_disconnect(self, error: Exception) -> bool:
        """Return whether a driver error means the connection is unusable."""
        if self._disconnect_errors is not None:
            return isinstance(error, self._disconnect_errors)
        return type(error).__name__ == "OperationalError"

    def _run(self, sql: str, call: _Call) -> list[Sequence[Any]]:
        conn = self._acquire()
        with call.lock:
            if call.abandoned:
                self._release(conn, broken=False)
                raise ConnectivityError("statement abandoned before it ran")
            call.conn = conn
        broken = False
        try:
            cursor = conn.cursor()
            with call.lock:
                call.cursor = cursor
            try:
                cursor.execute(sql)
                return list(cursor.fetchall())
            finally:
                cursor.close()
        except Exception as e:
            broken = self._is_disconnect(e)
            if broken:
                raise ConnectivityError(f"connection lost: {e}") from e
            raise
        finally:
            with call.lock:
                call.conn = call.cursor = None
                # A cancelled statement may leave the session in any state.
                broken = broken or call.abandoned
            self._release(conn, broken)

    def _abandon(self, call: _Call) -> None:
        with call.lock:
            call.abandoned = True
            cursor, conn = call.cursor, call.conn
        cancel = getattr(cursor, "cancel", None) or getattr(conn, "cancel", None)
        if cancel is None:
            return
        try:
            cancel()
        except Exception as e:
            logger.warning(
                "Error cancelling statement: %s",
                e,
                extra={"source_id": self.source_id},
            )

    async def fetch_all(self, sql: str) -> Sequence[Sequence[Any]]:
        """Run a query on a pooled connection and return all rows."""
        call = _Call()
        try:
            return await asyncio.to_thread(self._run, sql, call)
        except asyncio.CancelledError:
            self._abandon(call)
            raise

    async def ping(self) -> None:
        """Check that a pooled connection answers ``ping_sql``."""
        await self.fetch_all(self._ping_sql)

    def close(self) -> None:
        """Close idle connections; in-use ones close when released."""
        self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            self._discard(conn)
