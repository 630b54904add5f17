"""Collection engine and descriptor registry.

The engine owns the shared caches, builds the probe set once and exposes
the two operations the scrape boundary needs: ``describe`` (no I/O) and
``collect`` (one concurrent cycle over every probe).
"""

import asyncio
import logging
import socket
import threading
from collections.abc import Iterable

from dmexporter.core.cache import ResultCache
from dmexporter.core.capabilities import CapabilityCache
from dmexporter.core.config import EngineConfig
from dmexporter.core.errors import DuplicateMetricError
from dmexporter.core.executor import QueryExecutor
from dmexporter.core.logs import timed
from dmexporter.core.models import MetricDescriptor, Sample
from dmexporter.core.ports import ConnectionPort
from dmexporter.core.probe import Probe, ProbeContext
from dmexporter.probes import select_probes

logger = logging.getLogger(__name__)

# Serializes check-then-register across every registry in the process.
_REGISTER_LOCK = threading.Lock()


class ProbeRegistry:
    """Holds probes and guarantees unique descriptor names."""

    def __init__(self) -> None:
        self._descriptors: dict[str, MetricDescriptor] = {}
        self._probes: list[Probe] = []

    def register(self, probe: Probe) -> None:
        """Register a probe and its descriptors.

        Raises:
            DuplicateMetricError: If any descriptor name is already taken.
        """
        with _REGISTER_LOCK:
            names = [d.name for d in probe.descriptors]
            for name in names:
                if name in self._descriptors or names.count(name) > 1:
                    raise DuplicateMetricError(
                        f"metric {name!r} already registered ({probe.name})"
                    )
            for descriptor in probe.descriptors:
                self._descriptors[descriptor.name] = descriptor
            self._probes.append(probe)

    @property
    def probes(self) -> list[Probe]:
        return list(self._probes)

    def describe(self) -> list[MetricDescriptor]:
        return list(self._descriptors.values())


class Engine:
    """Adaptive metrics collection engine for one data source.

    Args:
        connection: Shared connection adapter for the data source.
        config: Engine configuration (defaults to ``EngineConfig()``).
        hostname: Value for ``host_name`` labels (defaults to this host).
        probes: Probe classes to build. Defaults to the catalogue groups
            enabled by ``config``.
        capabilities: Capability cache (a fresh one by default).
        cache: Result cache (a fresh one by default).

    Raises:
        DuplicateMetricError: If two probes declare the same metric name.
    """

    def __init__(
        self,
        connection: ConnectionPort,
        config: EngineConfig | None = None,
        *,
        hostname: str | None = None,
        probes: Iterable[type[Probe]] | None = None,
        capabilities: CapabilityCache | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.capabilities = capabilities or CapabilityCache()
        self.cache = cache or ResultCache()
        self.executor = QueryExecutor(connection, timeout=self.config.query_timeout)
        self.context = ProbeContext(
            executor=self.executor,
            capabilities=self.capabilities,
            cache=self.cache,
            config=self.config,
            hostname=hostname or socket.gethostname(),
        )
        if probes is None:
            probes = select_probes(self.config)
        self.registry = ProbeRegistry()
        for probe_cls in probes:
            self.registry.register(probe_cls(self.context))
        logger.info(
            "Engine ready with %d probes",
            len(self.registry.probes),
            extra={"source_id": self.source_id},
        )

    @property
    def source_id(self) -> str:
        return self.executor.source_id

    def describe(self) -> list[MetricDescriptor]:
        """Return every registered descriptor without touching the database."""
        return self.registry.describe()

    async def collect(self) -> list[Sample]:
        """Run one cycle over all probes concurrently and return the samples."""
        with timed(logger, "Collection cycle", source_id=self.source_id):
            results = await asyncio.gather(
                *(self._collect_probe(p) for p in self.registry.probes)
            )
        return [sample for samples in results for sample in samples]

    async def _collect_probe(self, probe: Probe) -> list[Sample]:
        sink: list[Sample] = []
        try:
            await probe.collect(sink)
        except Exception:
            logger.exception(
                "Probe %s failed, its samples are dropped this cycle",
                probe.name,
                extra={"probe": probe.name, "source_id": self.source_id},
            )
            return []
        return sink
