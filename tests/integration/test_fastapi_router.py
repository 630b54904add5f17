"""Integration tests for the FastAPI exporter router."""

import json

import pytest
from tests.helpers import FakeConnection

fastapi = pytest.importorskip("fastapi")

from dmexporter.adapters.frameworks.fastapi import create_exporter_router  # noqa: E402
from dmexporter.adapters.storage.ring_buffer import RingBufferLogStorage  # noqa: E402
from dmexporter.core.engine import Engine  # noqa: E402
from dmexporter.core.models import LogEntry  # noqa: E402
from dmexporter.probes import queries  # noqa: E402
from dmexporter.probes.instance import DualProbe  # noqa: E402

pytestmark = [pytest.mark.asgi, pytest.mark.tier(2)]


@pytest.fixture
def engine(fake_connection: FakeConnection) -> Engine:
    fake_connection.script(queries.DUAL, rows=[(1,)])
    return Engine(fake_connection, probes=[DualProbe])


def _app(engine: Engine, log_storage: RingBufferLogStorage | None = None):
    app = fastapi.FastAPI()
    app.include_router(create_exporter_router(engine, log_storage))
    return app


class TestExporterRouter:
    """Tests for create_exporter_router."""

    async def test_metrics(self, engine: Engine, asgi_test_client) -> None:
        async with asgi_test_client(_app(engine)) as client:
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "dmdbms_dual_info 1.0" in response.text

    async def test_logs_with_filters(
        self, engine: Engine, log_storage: RingBufferLogStorage, asgi_test_client
    ) -> None:
        log_storage.write_sync(LogEntry(1.0, "ERROR", "old failure"))
        log_storage.write_sync(LogEntry(3.0, "ERROR", "new failure"))
        log_storage.write_sync(LogEntry(4.0, "WARNING", "feature absent"))

        async with asgi_test_client(_app(engine, log_storage)) as client:
            response = await client.get("/logs", params={"since": 2, "level": "error"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        messages = [json.loads(x)["message"] for x in response.text.splitlines()]
        assert messages == ["new failure"]

    async def test_unknown_level_is_ignored(
        self, engine: Engine, log_storage: RingBufferLogStorage, asgi_test_client
    ) -> None:
        log_storage.write_sync(LogEntry(1.0, "ERROR", "a"))
        log_storage.write_sync(LogEntry(2.0, "WARNING", "b"))

        async with asgi_test_client(_app(engine, log_storage)) as client:
            response = await client.get("/logs", params={"level": "loud"})

        assert len(response.text.splitlines()) == 2

    async def test_negative_since_is_rejected(
        self, engine: Engine, log_storage: RingBufferLogStorage, asgi_test_client
    ) -> None:
        async with asgi_test_client(_app(engine, log_storage)) as client:
            response = await client.get("/logs", params={"since": -1})

        assert response.status_code == 422

    async def test_logs_not_mounted_without_storage(
        self, engine: Engine, asgi_test_client
    ) -> None:
        async with asgi_test_client(_app(engine)) as client:
            response = await client.get("/logs")

        assert response.status_code == 404
