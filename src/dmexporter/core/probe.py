"""The probe contract shared by every metric-producing unit.

A probe pairs metric descriptors with a query strategy and an emission
routine. ``Probe.collect`` drives one cycle:

1. gate: a false gate emits nothing (normal, not an error)
2. cache: cache-eligible probes emit from a live cache entry and stop
3. query: build SQL (capability-aware) and run it through the executor
4. failure: nothing is emitted this cycle
5. success: dedup if enabled, emit, then populate the cache

Subclasses override ``gate``, ``query`` and ``emit``. ``RowProbe`` covers
the common single-statement case declaratively.
"""

import logging
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import ClassVar

from dmexporter.core.cache import (
    ResultCache,
    cache_key,
    dump_rows,
    load_rows,
)
from dmexporter.core.capabilities import (
    CapabilityCache,
    detect_columns,
    detect_view,
)
from dmexporter.core.coercion import Scanner
from dmexporter.core.config import EngineConfig
from dmexporter.core.executor import QueryExecutor
from dmexporter.core.models import MetricDescriptor, QueryError, Row, Sample

logger = logging.getLogger(__name__)


def dedupe_rows(
    rows: Iterable[Row], key: Callable[[Row], Hashable] | None = None
) -> list[Row]:
    """Drop rows whose key was already seen, keeping first-seen order."""
    seen: set[Hashable] = set()
    result: list[Row] = []
    for row in rows:
        marker = row if key is None else key(row)
        if marker in seen:
            continue
        seen.add(marker)
        result.append(row)
    return result


@dataclass
class ProbeContext:
    """Shared collaborators handed to every probe at construction.

    The caches are owned by the engine; probes only hold references.
    """

    executor: QueryExecutor
    capabilities: CapabilityCache
    cache: ResultCache
    config: EngineConfig
    hostname: str

    @property
    def source_id(self) -> str:
        return self.executor.source_id

    async def has_view(self, view: str) -> bool:
        """Return whether a dynamic view exists on this data source."""
        return await self.capabilities.probe(
            self.source_id,
            f"view:{view.upper()}",
            detect_view(self.executor, view),
            timeout=self.config.capability_timeout,
        )

    async def has_columns(self, view: str, columns: tuple[str, ...]) -> bool:
        """Return whether every column exists on a dynamic view."""
        feature = f"columns:{view.upper()}:{','.join(c.upper() for c in columns)}"
        return await self.capabilities.probe(
            self.source_id,
            feature,
            detect_columns(self.executor, view, columns),
            timeout=self.config.capability_timeout,
        )


class Probe:
    """Base class for probes.

    Class attributes:
        descriptors: Metrics this probe emits. The first descriptor's name
            namespaces the probe's cache key.
        cacheable: Whether successful results go to the result cache.
        dedupe: Whether semantically identical rows are collapsed.
    """

    descriptors: ClassVar[tuple[MetricDescriptor, ...]] = ()
    cacheable: ClassVar[bool] = False
    dedupe: ClassVar[bool] = False

    def __init__(self, ctx: ProbeContext) -> None:
        self.ctx = ctx

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def cache_key(self) -> str:
        return cache_key(self.descriptors[0].name, self.ctx.source_id)

    async def gate(self) -> bool:
        """Return False to skip this cycle silently."""
        return True

    async def query(self) -> list[Row] | None:
        """Fetch rows, or return None when the query failed."""
        raise NotImplementedError

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        """Append samples for ``rows`` to ``sink``."""
        raise NotImplementedError

    def dedupe_key(self, row: Row) -> Hashable:
        return row

    def encode_payload(self, rows: list[Row]) -> str | None:
        return dump_rows(rows)

    def decode_payload(self, payload: str) -> list[Row] | None:
        return load_rows(payload)

    async def collect(self, sink: list[Sample]) -> None:
        """Run one collection cycle, appending samples to ``sink``."""
        if not await self.gate():
            logger.info(
                "Probe %s gated off, nothing collected",
                self.name,
                extra={"probe": self.name, "source_id": self.ctx.source_id},
            )
            return

        if self.cacheable:
            cached = self._read_cache()
            if cached is not None:
                self.emit(cached, sink)
                return

        rows = await self.query()
        if rows is None:
            return
        if self.dedupe:
            rows = dedupe_rows(rows, self.dedupe_key)
        self.emit(rows, sink)

        if self.cacheable:
            payload = self.encode_payload(rows)
            if payload is not None:
                self.ctx.cache.set(self.cache_key, payload, self.ctx.config.cache_ttl)

    def _read_cache(self) -> list[Row] | None:
        payload, found = self.ctx.cache.get(self.cache_key)
        if not found or payload is None:
            return None
        rows = self.decode_payload(payload)
        if rows is None:
            logger.error(
                "Ignoring unreadable cache entry %s",
                self.cache_key,
                extra={"probe": self.name, "source_id": self.ctx.source_id},
            )
        return rows


class RowProbe(Probe):
    """Probe running one statement and emitting per row.

    Class attributes:
        sql: Statement text.
        columns: One scanner per selected column.
    """

    sql: ClassVar[str] = ""
    columns: ClassVar[tuple[Scanner, ...]] = ()

    async def build_sql(self) -> str:
        """Return the statement to run; override for capability rewrites."""
        return self.sql

    async def query(self) -> list[Row] | None:
        outcome = await self.ctx.executor.execute(
            await self.build_sql(), columns=self.columns
        )
        if isinstance(outcome, QueryError):
            return self.on_failure(outcome)
        return outcome.rows

    def on_failure(self, error: QueryError) -> list[Row] | None:
        """Handle a failed query; the default emits nothing."""
        return None

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        for row in rows:
            self.emit_row(row, sink)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        raise NotImplementedError
