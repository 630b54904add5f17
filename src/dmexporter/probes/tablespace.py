"""Tablespace and data file size probes.

Both enumerate every data file, which is expensive on large instances, so
their results are served from the result cache between refreshes.
"""

from dmexporter.core.coercion import (
    as_float,
    as_str,
    null_float_to_float,
    null_string_to_string,
)
from dmexporter.core.models import MetricDescriptor, Row, Sample
from dmexporter.core.probe import RowProbe
from dmexporter.probes import queries


class TablespaceProbe(RowProbe):
    """Total and free bytes per tablespace."""

    TOTAL = MetricDescriptor(
        "dmdbms_tablespace_size_total_info",
        "Tablespace total size in bytes",
        ("host_name", "tablespace_name"),
    )
    FREE = MetricDescriptor(
        "dmdbms_tablespace_size_free_info",
        "Tablespace free size in bytes",
        ("host_name", "tablespace_name"),
    )

    descriptors = (TOTAL, FREE)
    cacheable = True
    sql = queries.TABLESPACE_INFO
    columns = (as_str, as_float, as_float)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        name, total, free = row
        tablespace = null_string_to_string(name)
        host = self.ctx.hostname
        sink.append(self.TOTAL.sample(null_float_to_float(total), host, tablespace))
        sink.append(self.FREE.sample(null_float_to_float(free), host, tablespace))


class TablespaceFileProbe(RowProbe):
    """Total and free bytes per data file, with its growth settings."""

    _LABELS = ("host_name", "tablespace_name", "auto_extend", "next_size", "max_size")
    TOTAL = MetricDescriptor(
        "dmdbms_tablespace_file_total_info",
        "Data file total size in bytes",
        _LABELS,
    )
    FREE = MetricDescriptor(
        "dmdbms_tablespace_file_free_info",
        "Data file free size in bytes",
        _LABELS,
    )

    descriptors = (TOTAL, FREE)
    cacheable = True
    sql = queries.TABLESPACE_FILE_INFO
    columns = (as_str, as_float, as_float, as_str, as_str, as_str)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        path, total, free, auto_extend, next_size, max_size = row
        labels = (
            self.ctx.hostname,
            null_string_to_string(path),
            null_string_to_string(auto_extend),
            null_string_to_string(next_size),
            null_string_to_string(max_size),
        )
        sink.append(self.TOTAL.sample(null_float_to_float(total), *labels))
        sink.append(self.FREE.sample(null_float_to_float(free), *labels))
