"""Structured logging helpers for failure notices.

Notices go through the standard library ``logging`` module. Structured
fields are passed as ``extra`` so handlers such as ``NoticeHandler`` can
store them as attributes.
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from dmexporter.core.models import FailureCause

_SQL_PREVIEW_LENGTH = 500


def _preview(sql: str) -> str:
    """Collapse whitespace and shorten SQL text for log lines."""
    text = " ".join(sql.split())
    if len(text) > _SQL_PREVIEW_LENGTH:
        return text[:_SQL_PREVIEW_LENGTH] + "..."
    return text


def log_query_failure(
    logger: logging.Logger,
    sql: str,
    cause: FailureCause,
    error: BaseException | str,
    **attributes: str | int | float | bool,
) -> None:
    """Log a failed query with its SQL text and classified cause.

    Timeouts are worded distinctly from other failures so they stand out
    when grepping logs.
    """
    if cause is FailureCause.TIMEOUT:
        message = "Query timed out SQL: %s, error: %s"
    elif cause is FailureCause.CONNECTIVITY:
        message = "Database connection is not available SQL: %s, error: %s"
    else:
        message = "Error querying database SQL: %s, error: %s"
    logger.error(
        message,
        _preview(sql),
        error,
        extra={"cause": cause.value, "sql": _preview(sql), **attributes},
    )


def log_scan_failure(
    logger: logging.Logger,
    sql: str,
    row_index: int,
    error: BaseException,
    **attributes: str | int | float | bool,
) -> None:
    """Log a row that could not be scanned and was skipped."""
    logger.error(
        "Error scanning row %d, skipped: %s",
        row_index,
        error,
        extra={"cause": "scan_failed", "sql": _preview(sql), **attributes},
    )


@dataclass
class TimedResult:
    """Result object for the timed context manager."""

    elapsed_seconds: float = 0.0


@contextmanager
def timed(
    logger: logging.Logger,
    message: str,
    level: int = logging.DEBUG,
    **attributes: str | int | float | bool,
) -> Generator[TimedResult, None, None]:
    """Log entry and exit of a block together with the elapsed time.

    Args:
        logger: Logger to write to.
        message: The base log message.
        level: Log level (default DEBUG).
        **attributes: Additional structured fields.

    Yields:
        TimedResult whose ``elapsed_seconds`` is set on exit.
    """
    result = TimedResult()
    start = time.perf_counter()
    logger.log(level, "%s [entry]", message, extra={"phase": "entry", **attributes})
    try:
        yield result
    finally:
        result.elapsed_seconds = time.perf_counter() - start
        logger.log(
            level,
            "%s [exit]",
            message,
            extra={
                "phase": "exit",
                "elapsed_seconds": result.elapsed_seconds,
                **attributes,
            },
        )
