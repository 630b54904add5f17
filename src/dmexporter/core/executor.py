"""Deadline-bound query execution against the shared connection."""

import asyncio
import logging

from dmexporter.core.coercion import Scanner, scan_row
from dmexporter.core.errors import ConnectivityError, ScanError
from dmexporter.core.logs import log_query_failure, log_scan_failure
from dmexporter.core.models import (
    FailureCause,
    QueryError,
    QueryOutcome,
    QueryResult,
    Row,
)
from dmexporter.core.ports import ConnectionPort

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 5.0


class QueryExecutor:
    """Runs single SQL statements with a deadline and classifies failures.

    The executor never retries. Failures are logged with the SQL text and
    returned as ``QueryError`` values so that a failing probe cannot abort
    the scrape.

    Args:
        connection: Shared connection adapter.
        timeout: Default per-query deadline in seconds.
    """

    def __init__(
        self, connection: ConnectionPort, timeout: float = DEFAULT_QUERY_TIMEOUT
    ) -> None:
        self._connection = connection
        self._timeout = timeout

    @property
    def source_id(self) -> str:
        return self._connection.source_id

    @property
    def timeout(self) -> float:
        return self._timeout

    async def execute(
        self,
        sql: str,
        columns: tuple[Scanner, ...] | None = None,
        timeout: float | None = None,
    ) -> QueryOutcome:
        """Run ``sql`` and return its rows or a classified error.

        Args:
            sql: Statement to run.
            columns: One scanner per column. Rows that fail to scan are
                logged and skipped; the rest are still returned.
            timeout: Deadline in seconds (defaults to the executor timeout).
        """
        deadline = self._timeout if timeout is None else timeout
        try:
            raw_rows = await asyncio.wait_for(
                self._connection.fetch_all(sql), timeout=deadline
            )
        except TimeoutError:
            return self._failed(
                sql, FailureCause.TIMEOUT, f"deadline of {deadline}s exceeded"
            )
        except ConnectivityError as e:
            return self._failed(sql, FailureCause.CONNECTIVITY, e)
        except Exception as e:
            return self._failed(sql, FailureCause.QUERY_FAILED, e)

        if columns is None:
            return QueryResult(sql=sql, rows=[tuple(row) for row in raw_rows])

        rows: list[Row] = []
        for index, raw in enumerate(raw_rows):
            try:
                rows.append(scan_row(raw, columns))
            except ScanError as e:
                log_scan_failure(logger, sql, index, e, source_id=self.source_id)
        return QueryResult(sql=sql, rows=rows)

    async def fetch_one(
        self,
        sql: str,
        columns: tuple[Scanner, ...] | None = None,
        timeout: float | None = None,
    ) -> QueryOutcome:
        """Run ``sql`` and keep only the first row.

        An empty result is reported as a ``QUERY_FAILED`` error.
        """
        outcome = await self.execute(sql, columns=columns, timeout=timeout)
        if not outcome.ok:
            return outcome
        if not outcome.rows:
            return self._failed(sql, FailureCause.QUERY_FAILED, "no rows returned")
        return QueryResult(sql=sql, rows=outcome.rows[:1])

    async def ping(self, timeout: float | None = None) -> QueryError | None:
        """Check connectivity, returning a ``QueryError`` if it fails."""
        deadline = self._timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._connection.ping(), timeout=deadline)
        except TimeoutError:
            return self._failed(
                "<ping>", FailureCause.TIMEOUT, f"deadline of {deadline}s exceeded"
            )
        except Exception as e:
            return self._failed("<ping>", FailureCause.CONNECTIVITY, e)
        return None

    def _failed(
        self, sql: str, cause: FailureCause, error: BaseException | str
    ) -> QueryError:
        log_query_failure(logger, sql, cause, error, source_id=self.source_id)
        return QueryError(sql=sql, cause=cause, message=str(error) or cause.value)
