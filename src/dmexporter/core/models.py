"""Core domain models for the collection engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MetricKind(str, Enum):
    """Prometheus value kind of a metric."""

    GAUGE = "gauge"
    COUNTER = "counter"


class FailureCause(str, Enum):
    """Classified cause of a failed query."""

    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class MetricDescriptor:
    """Immutable description of one metric.

    Attributes:
        name: Metric name (e.g., dmdbms_tablespace_size_total_info).
        help: Help text shown in the exposition format.
        label_names: Ordered label names; samples supply values positionally.
        kind: Gauge or counter.
    """

    name: str
    help: str
    label_names: tuple[str, ...] = ()
    kind: MetricKind = MetricKind.GAUGE

    def sample(self, value: float, *label_values: str) -> "Sample":
        """Create a sample for this descriptor.

        Raises:
            ValueError: If the number of label values does not match.
        """
        if len(label_values) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, "
                f"got {len(label_values)}"
            )
        return Sample(
            descriptor=self,
            label_values=tuple(label_values),
            value=float(value),
            kind=self.kind,
        )


@dataclass(frozen=True)
class Sample:
    """A single metric value produced during one collection cycle.

    Attributes:
        descriptor: The descriptor this sample belongs to.
        label_values: Label values in the descriptor's label order.
        value: The metric value.
        kind: Gauge or counter (copied from the descriptor).
    """

    descriptor: MetricDescriptor
    label_values: tuple[str, ...]
    value: float
    kind: MetricKind = MetricKind.GAUGE

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.descriptor.label_names, self.label_values))


@dataclass(frozen=True)
class CacheEntry:
    """A result cache entry.

    Attributes:
        key: Cache key.
        payload: Serialized snapshot of a query result.
        expires_at: Absolute clock value after which the entry is absent.
    """

    key: str
    payload: str
    expires_at: float


Row = tuple[Any, ...]


@dataclass(frozen=True)
class QueryResult:
    """Successful query outcome.

    Rows hold nullable scalars; ``None`` marks an invalid (NULL) field.
    """

    sql: str
    rows: list[Row] = field(default_factory=list)

    ok = True


@dataclass(frozen=True)
class QueryError:
    """Failed query outcome with its classified cause."""

    sql: str
    cause: FailureCause
    message: str

    ok = False


QueryOutcome = QueryResult | QueryError


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        timestamp: Unix timestamp in seconds.
        level: Log level (e.g., INFO, ERROR, DEBUG).
        message: The log message.
        attributes: Additional structured fields.
    """

    timestamp: float
    level: str
    message: str
    attributes: dict[str, str | int | float | bool] = field(default_factory=dict)
