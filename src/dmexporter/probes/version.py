"""Database version probe with a two-tier fallback.

Newer servers expose ``BUILD_TYPE`` and ``INNER_VER`` on ``V$INSTANCE``.
Older ones only offer a version string, found either on ``V$INSTANCE`` (when
it has a ``BUILD_VERSION`` column) or in the ``V$VERSION`` banner. The
cached payload records which tier answered so a later read knows whether
full detail is available.
"""

import json
import logging

from dmexporter.core.coercion import as_int, as_str, null_string_to_string
from dmexporter.core.models import MetricDescriptor, QueryError, Row, Sample
from dmexporter.core.probe import Probe
from dmexporter.probes import queries

logger = logging.getLogger(__name__)

DETAIL_FULL = "full"
DETAIL_COARSE = "coarse"

BANNER_PREFIX = "DM Database Server"


def normalize_version(text: str) -> str:
    """Strip newlines, the server banner prefix and surrounding whitespace."""
    version = text.replace("\r", "").replace("\n", "")
    if BANNER_PREFIX in version:
        version = version.replace(BANNER_PREFIX, "")
    return version.strip()


class VersionProbe(Probe):
    """Reports the server version as labels on a constant gauge."""

    VERSION = MetricDescriptor(
        "dmdbms_version",
        "Information about DM database version",
        ("host_name", "db_version_str", "build_type", "inner_ver"),
    )

    descriptors = (VERSION,)
    cacheable = True

    async def query(self) -> list[Row] | None:
        executor = self.ctx.executor
        outcome = await executor.fetch_one(
            queries.VERSION_DETAIL, columns=(as_str, as_str, as_str)
        )
        if not isinstance(outcome, QueryError):
            id_code, build_type, inner_ver = outcome.rows[0]
            return [
                (
                    DETAIL_FULL,
                    null_string_to_string(id_code),
                    null_string_to_string(build_type),
                    null_string_to_string(inner_ver),
                )
            ]

        logger.warning("Detailed version query failed, falling back to legacy query")
        version = await self._legacy_version()
        if version is None:
            return None
        logger.info("Database version (legacy) detected: %s", version)
        return [(DETAIL_COARSE, version, "", "")]

    async def _legacy_version(self) -> str | None:
        executor = self.ctx.executor
        position = await executor.fetch_one(
            queries.VERSION_BUILD_POSITION, columns=(as_int,)
        )
        if isinstance(position, QueryError):
            return None
        (pos,) = position.rows[0]
        sql = queries.VERSION_WITH_BUILD if (pos or 0) > 0 else queries.VERSION_BANNER
        outcome = await executor.fetch_one(sql, columns=(as_str,))
        if isinstance(outcome, QueryError):
            return None
        (text,) = outcome.rows[0]
        return normalize_version(null_string_to_string(text))

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        for _detail, version, build_type, inner_ver in rows:
            sink.append(
                self.VERSION.sample(1, self.ctx.hostname, version, build_type, inner_ver)
            )

    def encode_payload(self, rows: list[Row]) -> str | None:
        detail, version, build_type, inner_ver = rows[0]
        return json.dumps(
            {
                "detail": detail,
                "version": version,
                "build_type": build_type,
                "inner_ver": inner_ver,
            }
        )

    def decode_payload(self, payload: str) -> list[Row] | None:
        try:
            data = json.loads(payload)
            detail = data["detail"]
            if detail not in (DETAIL_FULL, DETAIL_COARSE):
                raise ValueError(f"unknown detail sentinel {detail!r}")
            row = (detail, data["version"], data["build_type"], data["inner_ver"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Cached version payload is unreadable: %s", e)
            return None
        return [row]
