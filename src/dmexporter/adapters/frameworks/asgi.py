"""Framework-free ASGI app serving the exporter endpoints.

Runs under any ASGI server (uvicorn, hypercorn, daphne) without FastAPI.
``/metrics`` runs one collection cycle per request and ``/logs`` streams
stored notices as NDJSON.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs

from prometheus_client import CONTENT_TYPE_LATEST

from dmexporter.adapters.frameworks.query_params import (
    _parse_level_param,
    _parse_since_param,
)
from dmexporter.adapters.prometheus import encode_samples
from dmexporter.core.encoding.ndjson import encode_logs
from dmexporter.core.engine import Engine
from dmexporter.core.ports import LogStoragePort

logger = logging.getLogger(__name__)

Scope = dict[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]
Send = Callable[[dict[str, Any]], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]
Handler = Callable[[Scope], Awaitable[bytes | str]]

NDJSON_CONTENT_TYPE = "application/x-ndjson"
_ERROR_BODY = json.dumps({"error": "Internal Server Error"})


async def _send_response(
    send: Send, status: int, content_type: str, body: str | bytes
) -> None:
    """Write a complete HTTP response (start and body messages)."""
    payload = body.encode() if isinstance(body, str) else body
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [(b"content-type", content_type.encode())],
        }
    )
    await send({"type": "http.response.body", "body": payload})


async def _handle_endpoint(
    send: Send, scope: Scope, handler: Handler, content_type: str
) -> None:
    """Run ``handler`` and answer 200, or 500 with a JSON error if it raises."""
    try:
        body = await handler(scope)
    except Exception:
        logger.exception("Error serving %s", scope.get("path"))
        await _send_response(send, 500, "application/json", _ERROR_BODY)
        return
    await _send_response(send, 200, content_type, body)


def create_asgi_app(
    engine: Engine,
    log_storage: LogStoragePort | None = None,
) -> ASGIApp:
    """Create an ASGI app with /metrics and /logs endpoints.

    Args:
        engine: Engine collected on every /metrics request.
        log_storage: Storage holding log notices. /logs answers 404
            when omitted.

    Returns:
        ASGI application callable.
    """

    async def render_metrics(_scope: Scope) -> bytes:
        samples = await engine.collect()
        return encode_samples(engine.describe(), samples)

    routes: dict[str, tuple[Handler, str]] = {
        "/metrics": (render_metrics, CONTENT_TYPE_LATEST),
    }

    if log_storage is not None:

        async def render_logs(scope: Scope) -> str:
            params = parse_qs(scope.get("query_string", b"").decode(errors="replace"))
            return await encode_logs(
                log_storage.read(
                    since=_parse_since_param(params),
                    level=_parse_level_param(params),
                )
            )

        routes["/logs"] = (render_logs, NDJSON_CONTENT_TYPE)

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return
        route = routes.get(scope["path"])
        if route is None:
            await _send_response(send, 404, "text/plain", "Not Found")
            return
        handler, content_type = route
        await _handle_endpoint(send, scope, handler, content_type)

    return app
