"""FastAPI adapter for the exporter endpoints."""

from fastapi import APIRouter, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST

from dmexporter.adapters.frameworks.query_params import VALID_LEVELS
from dmexporter.adapters.prometheus import encode_samples
from dmexporter.core.encoding.ndjson import encode_logs
from dmexporter.core.engine import Engine
from dmexporter.core.ports import LogStoragePort


def create_exporter_router(
    engine: Engine,
    log_storage: LogStoragePort | None = None,
) -> APIRouter:
    """Create a FastAPI router with /metrics and /logs endpoints.

    Args:
        engine: Engine collected on every /metrics request.
        log_storage: Storage holding log notices. /logs is only mounted
            when given.

    Returns:
        APIRouter with the exporter endpoints configured.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return metrics in Prometheus text format."""
        samples = await engine.collect()
        body = encode_samples(engine.describe(), samples)
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    if log_storage is not None:

        @router.get("/logs")
        async def get_logs(
            since: float = Query(default=0, ge=0),
            level: str | None = Query(default=None),
        ) -> Response:
            """Return log notices in NDJSON format.

            Args:
                since: Unix timestamp. Returns entries with timestamp > since.
                level: Optional level filter; unknown levels are ignored.
            """
            wanted = level.upper() if level and level.upper() in VALID_LEVELS else None
            body = await encode_logs(log_storage.read(since=since, level=wanted))
            return Response(content=body, media_type="application/x-ndjson")

    return router
