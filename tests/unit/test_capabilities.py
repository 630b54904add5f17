"""Tests for the capability probe cache."""

import asyncio

import pytest
from tests.helpers import FakeConnection

from dmexporter.core.capabilities import CapabilityCache, detect_columns, detect_view
from dmexporter.core.executor import QueryExecutor

pytestmark = [pytest.mark.core, pytest.mark.tier(1)]


class TestCapabilityCache:
    """Tests for CapabilityCache.probe memoization."""

    async def test_detects_once_then_memoizes(self) -> None:
        cache = CapabilityCache()
        calls = 0

        async def detect() -> bool:
            nonlocal calls
            calls += 1
            return True

        assert await cache.probe("dm", "view:V$DMMONITOR", detect) is True
        assert await cache.probe("dm", "view:V$DMMONITOR", detect) is True
        assert calls == 1

    async def test_concurrent_first_calls_share_one_detection(self) -> None:
        """N concurrent callers trigger exactly one detection."""
        cache = CapabilityCache()
        calls = 0

        async def detect() -> bool:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return True

        results = await asyncio.gather(
            *(cache.probe("dm", "view:V$ARCH_APPLY_INFO", detect) for _ in range(10))
        )

        assert results == [True] * 10
        assert calls == 1

    async def test_failure_is_memoized_as_false(self) -> None:
        cache = CapabilityCache()
        calls = 0

        async def detect() -> bool:
            nonlocal calls
            calls += 1
            raise PermissionError("no privilege on V$DYNAMIC_TABLES")

        assert await cache.probe("dm", "view:X", detect) is False
        assert await cache.probe("dm", "view:X", detect) is False
        assert calls == 1

    async def test_timeout_is_treated_as_absent(self) -> None:
        cache = CapabilityCache()

        async def detect() -> bool:
            await asyncio.sleep(1)
            return True

        assert await cache.probe("dm", "view:SLOW", detect, timeout=0.01) is False
        assert cache.peek("dm", "view:SLOW") is False

    async def test_flags_are_scoped_by_source(self) -> None:
        cache = CapabilityCache()

        async def present() -> bool:
            return True

        async def absent() -> bool:
            return False

        assert await cache.probe("dm-a", "view:V", present) is True
        assert await cache.probe("dm-b", "view:V", absent) is False

    async def test_reset_forces_redetection(self) -> None:
        cache = CapabilityCache()
        calls = 0

        async def detect() -> bool:
            nonlocal calls
            calls += 1
            return True

        await cache.probe("dm", "view:V", detect)
        cache.reset(source_id="dm")
        assert cache.peek("dm", "view:V") is None
        await cache.probe("dm", "view:V", detect)
        assert calls == 2

    async def test_reset_filters_by_feature(self) -> None:
        cache = CapabilityCache()

        async def detect() -> bool:
            return True

        await cache.probe("dm", "a", detect)
        await cache.probe("dm", "b", detect)
        cache.reset(feature_key="a")
        assert cache.peek("dm", "a") is None
        assert cache.peek("dm", "b") is True


class TestDetectors:
    """Tests for the dynamic view detectors."""

    async def test_detect_view_counts_dynamic_tables(
        self, fake_connection: FakeConnection
    ) -> None:
        fake_connection.script_view("V$DMMONITOR")
        detect = detect_view(QueryExecutor(fake_connection), "v$dmmonitor")

        assert await detect() is True
        assert fake_connection.count("V$DYNAMIC_TABLES") == 1

    async def test_detect_view_absent(self, fake_connection: FakeConnection) -> None:
        fake_connection.script_view("V$DMMONITOR", present=False)
        detect = detect_view(QueryExecutor(fake_connection), "V$DMMONITOR")

        assert await detect() is False

    async def test_detect_columns_requires_every_column(
        self, fake_connection: FakeConnection
    ) -> None:
        fake_connection.script("V$DYNAMIC_TABLE_COLUMNS", rows=[(1,)])
        detect = detect_columns(
            QueryExecutor(fake_connection),
            "V$ARCH_SEND_INFO",
            ("LAST_SEND_CODE", "LAST_SEND_DESC"),
        )

        assert await detect() is False

    async def test_detector_failure_raises(
        self, fake_connection: FakeConnection
    ) -> None:
        detect = detect_view(QueryExecutor(fake_connection), "V$MISSING")

        with pytest.raises(LookupError):
            await detect()
