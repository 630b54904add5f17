"""Memoized detection of optional schema features.

Different DM releases expose different dynamic views and columns. Probes
ask the capability cache whether a feature exists before choosing which SQL
variant to run. Each ``(source_id, feature_key)`` pair is detected at most
once; failures are remembered as ``False`` because an inaccessible feature
is treated exactly like an absent one.
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from dmexporter.core.coercion import as_int

if TYPE_CHECKING:
    from dmexporter.core.executor import QueryExecutor

logger = logging.getLogger(__name__)

Detector = Callable[[], Awaitable[bool]]

DEFAULT_DETECT_TIMEOUT = 2.0

_VIEW_EXISTS_SQL = (
    "SELECT /*+DM_EXPORTER*/ COUNT(1) FROM V$DYNAMIC_TABLES WHERE NAME = '{view}'"
)
_COLUMNS_EXIST_SQL = (
    "SELECT /*+DM_EXPORTER*/ COUNT(1) FROM V$DYNAMIC_TABLE_COLUMNS "
    "WHERE TABNAME = '{view}' AND COLNAME IN ({columns})"
)


class CapabilityCache:
    """Process-local memo of capability flags.

    Owned by the engine and handed to every probe. The in-flight detection
    for a key is shared through a ``concurrent.futures.Future`` so callers
    running on different event loops or threads still wait on one query.
    """

    def __init__(self) -> None:
        self._flags: dict[tuple[str, str], bool] = {}
        self._pending: dict[tuple[str, str], concurrent.futures.Future[bool]] = {}
        self._lock = threading.Lock()

    async def probe(
        self,
        source_id: str,
        feature_key: str,
        detect: Detector,
        timeout: float = DEFAULT_DETECT_TIMEOUT,
    ) -> bool:
        """Return whether the feature exists, detecting it on first use.

        Args:
            source_id: Identity of the data source.
            feature_key: Name of the optional feature (view, column set).
            detect: Coroutine function running one existence query.
            timeout: Deadline for the detection in seconds.
        """
        key = (source_id, feature_key)
        with self._lock:
            if key in self._flags:
                return self._flags[key]
            pending = self._pending.get(key)
            owner = pending is None
            if pending is None:
                pending = concurrent.futures.Future()
                self._pending[key] = pending

        if not owner:
            return await asyncio.wrap_future(pending)

        result: bool | None = None
        try:
            result = await self._detect(key, detect, timeout)
        finally:
            with self._lock:
                self._pending.pop(key, None)
                if result is not None:
                    self._flags[key] = result
            # Cancelled owner: waiters get False, nothing is memoized.
            pending.set_result(bool(result))
        return result

    async def _detect(
        self, key: tuple[str, str], detect: Detector, timeout: float
    ) -> bool:
        source_id, feature_key = key
        try:
            found = bool(await asyncio.wait_for(detect(), timeout))
        except TimeoutError:
            logger.warning(
                "Capability detection timed out, treating %s as absent",
                feature_key,
                extra={"source_id": source_id, "feature": feature_key},
            )
            return False
        except Exception as e:
            logger.warning(
                "Capability detection failed, treating %s as absent: %s",
                feature_key,
                e,
                extra={"source_id": source_id, "feature": feature_key},
            )
            return False
        logger.info(
            "Capability %s detected: %s",
            feature_key,
            found,
            extra={"source_id": source_id, "feature": feature_key},
        )
        return found

    def peek(self, source_id: str, feature_key: str) -> bool | None:
        """Return the memoized flag without detecting, or None if unknown."""
        with self._lock:
            return self._flags.get((source_id, feature_key))

    def reset(
        self, source_id: str | None = None, feature_key: str | None = None
    ) -> None:
        """Forget memoized flags so they are detected again.

        With no arguments every flag is dropped. In-flight detections are not
        affected.
        """
        with self._lock:
            for key in list(self._flags):
                if source_id is not None and key[0] != source_id:
                    continue
                if feature_key is not None and key[1] != feature_key:
                    continue
                del self._flags[key]


def detect_view(executor: "QueryExecutor", view: str) -> Detector:
    """Build a detector checking that a dynamic view exists."""
    sql = _VIEW_EXISTS_SQL.format(view=view.upper())

    async def detect() -> bool:
        return await _count_equals(executor, sql, 1)

    return detect


def detect_columns(
    executor: "QueryExecutor", view: str, columns: tuple[str, ...]
) -> Detector:
    """Build a detector checking that every column exists on a view."""
    quoted = ", ".join(f"'{c.upper()}'" for c in columns)
    sql = _COLUMNS_EXIST_SQL.format(view=view.upper(), columns=quoted)

    async def detect() -> bool:
        return await _count_equals(executor, sql, len(columns))

    return detect


async def _count_equals(executor: "QueryExecutor", sql: str, expected: int) -> bool:
    outcome = await executor.fetch_one(sql, columns=(as_int,))
    if not outcome.ok:
        raise LookupError(outcome.message)
    (count,) = outcome.rows[0]
    return count == expected
