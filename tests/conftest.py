"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from pathlib import Path

import pytest
from tests.helpers import FakeClock, FakeConnection

from dmexporter.adapters.storage.ring_buffer import RingBufferLogStorage
from dmexporter.core.cache import ResultCache
from dmexporter.core.capabilities import CapabilityCache
from dmexporter.core.config import EngineConfig
from dmexporter.core.executor import QueryExecutor
from dmexporter.core.probe import ProbeContext

try:
    import httpx
except ImportError:
    httpx = None


@pytest.fixture
def sqlite_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite connection tests."""
    return str(tmp_path / "dm.db")


@pytest.fixture
def fake_connection() -> FakeConnection:
    """Scriptable connection with no statements scripted."""
    return FakeConnection()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_context(
    fake_connection: FakeConnection, clock: FakeClock
) -> Callable[..., ProbeContext]:
    """Factory fixture building a ProbeContext over the fake connection.

    Usage:
        def test_something(make_context):
            ctx = make_context(EngineConfig(query_timeout=0.1))
    """

    def _make(
        config: EngineConfig | None = None,
        connection: FakeConnection | None = None,
    ) -> ProbeContext:
        config = config or EngineConfig()
        return ProbeContext(
            executor=QueryExecutor(
                connection or fake_connection, timeout=config.query_timeout
            ),
            capabilities=CapabilityCache(),
            cache=ResultCache(clock=clock),
            config=config,
            hostname="db-host",
        )

    return _make


@pytest.fixture
def log_storage() -> RingBufferLogStorage:
    """Fresh bounded log storage."""
    return RingBufferLogStorage(max_size=100)


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Returns a callable that accepts an ASGI app and yields a client
    with ASGITransport configured.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(engine, log_storage)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
