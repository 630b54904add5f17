"""Unit tests for the NoticeHandler logging adapter."""

import asyncio
import logging
import sys
from typing import Any

import pytest
from tests.helpers import FakeConnection

from dmexporter.adapters.logging import NoticeHandler
from dmexporter.adapters.storage.ring_buffer import RingBufferLogStorage
from dmexporter.core.executor import QueryExecutor
from dmexporter.core.models import LogEntry


def _run_async(coro: Any) -> Any:
    """Run a coroutine in a new event loop (for sync test helpers)."""
    return asyncio.run(coro)


async def _collect_entries(storage: RingBufferLogStorage) -> list[LogEntry]:
    """Collect all entries from storage."""
    return [e async for e in storage.read()]


def _record(level: int = logging.ERROR, **extra: Any) -> logging.LogRecord:
    record = logging.LogRecord(
        name="dmexporter.test",
        level=level,
        pathname="probe.py",
        lineno=12,
        msg="query %s failed",
        args=("X",),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


@pytest.mark.core
class TestNoticeHandler:
    """Tests for NoticeHandler."""

    def test_handler_is_logging_handler(self) -> None:
        assert isinstance(NoticeHandler(RingBufferLogStorage()), logging.Handler)

    def test_emit_writes_log_entry(self) -> None:
        storage = RingBufferLogStorage()
        NoticeHandler(storage).handle(_record())

        entries = _run_async(_collect_entries(storage))

        assert len(entries) == 1
        assert entries[0].message == "query X failed"
        assert entries[0].level == "ERROR"
        assert entries[0].attributes["logger"] == "dmexporter.test"
        assert entries[0].attributes["lineno"] == 12

    def test_extra_fields_become_attributes(self) -> None:
        storage = RingBufferLogStorage()
        NoticeHandler(storage).handle(_record(cause="timeout", sql="SELECT 1"))

        (entry,) = _run_async(_collect_entries(storage))

        assert entry.attributes["cause"] == "timeout"
        assert entry.attributes["sql"] == "SELECT 1"

    def test_non_scalar_extras_are_ignored(self) -> None:
        storage = RingBufferLogStorage()
        NoticeHandler(storage).handle(_record(rows=[1, 2]))

        (entry,) = _run_async(_collect_entries(storage))

        assert "rows" not in entry.attributes

    def test_below_threshold_is_dropped(self) -> None:
        storage = RingBufferLogStorage()
        NoticeHandler(storage).handle(_record(level=logging.INFO))

        assert len(storage) == 0

    def test_exception_info_is_captured(self) -> None:
        storage = RingBufferLogStorage()
        try:
            raise ValueError("bad row")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        NoticeHandler(storage).handle(record)

        (entry,) = _run_async(_collect_entries(storage))

        assert entry.attributes["exc_type"] == "ValueError"
        assert entry.attributes["exc_message"] == "bad row"
        assert "Traceback" in entry.attributes["exc_traceback"]

    async def test_query_failures_reach_storage(
        self, fake_connection: FakeConnection
    ) -> None:
        storage = RingBufferLogStorage()
        handler = NoticeHandler(storage)
        logger = logging.getLogger("dmexporter")
        logger.addHandler(handler)
        try:
            await QueryExecutor(fake_connection).execute("SELECT * FROM NOPE")
        finally:
            logger.removeHandler(handler)

        entries = [e async for e in storage.read(level="ERROR")]
        assert entries[0].attributes["cause"] == "query_failed"
        assert entries[0].attributes["source_id"] == "fake-dm"
