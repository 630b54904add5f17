"""Bridge between the engine and prometheus_client.

``EngineCollector`` implements the custom-collector contract: ``describe``
lists metric families without touching the database and ``collect`` runs
one engine cycle. The registry calls both synchronously, so cycles are
submitted to a long-lived event loop owned by the collector.
"""

import logging
from collections.abc import Iterable, Iterator

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from dmexporter.adapters.async_utils import LoopThread
from dmexporter.core.engine import Engine
from dmexporter.core.models import MetricDescriptor, MetricKind, Sample

logger = logging.getLogger(__name__)


def _family(descriptor: MetricDescriptor) -> Metric:
    labels = list(descriptor.label_names)
    if descriptor.kind is MetricKind.COUNTER:
        return CounterMetricFamily(descriptor.name, descriptor.help, labels=labels)
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=labels)


def to_families(
    descriptors: Iterable[MetricDescriptor], samples: Iterable[Sample]
) -> list[Metric]:
    """Group samples into metric families, one per descriptor.

    Descriptors without samples yield empty families. Samples whose
    descriptor is not listed are dropped.
    """
    families = {d.name: _family(d) for d in descriptors}
    for sample in samples:
        family = families.get(sample.name)
        if family is None:
            logger.warning("Dropping sample for unregistered metric %s", sample.name)
            continue
        family.add_metric(list(sample.label_values), sample.value)
    return list(families.values())


class _StaticCollector(Collector):
    def __init__(self, families: list[Metric]) -> None:
        self._families = families

    def collect(self) -> Iterator[Metric]:
        return iter(self._families)


def encode_samples(
    descriptors: Iterable[MetricDescriptor], samples: Iterable[Sample]
) -> bytes:
    """Render samples in the Prometheus text exposition format."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(_StaticCollector(to_families(descriptors, samples)))
    return generate_latest(registry)


class EngineCollector(Collector):
    """prometheus_client collector driven by an Engine.

    Args:
        engine: The engine to collect from.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._runner = LoopThread(name=f"dmexporter-{engine.source_id}")

    def describe(self) -> Iterator[Metric]:
        """Yield one empty family per registered descriptor."""
        for descriptor in self._engine.describe():
            yield _family(descriptor)

    def collect(self) -> Iterator[Metric]:
        """Run one engine cycle and yield the resulting families."""
        samples = self._runner.run(self._engine.collect())
        yield from to_families(self._engine.describe(), samples)

    def close(self) -> None:
        """Stop the collector's event loop thread."""
        self._runner.stop()


def register_engine(engine: Engine, registry: CollectorRegistry) -> EngineCollector:
    """Register an engine's collector with ``registry``.

    Raises:
        ValueError: If a metric name is already registered in ``registry``.
    """
    collector = EngineCollector(engine)
    registry.register(collector)
    return collector
