"""Archive log probes: status, send lag and switch rate."""

import logging

from dmexporter.core.coercion import (
    as_float,
    as_str,
    null_float_to_float,
    null_string_to_string,
)
from dmexporter.core.models import MetricDescriptor, QueryError, Row, Sample
from dmexporter.core.probe import Probe, ProbeContext, RowProbe
from dmexporter.probes import queries

logger = logging.getLogger(__name__)

ARCH_NOT_ENABLED = -1
ARCH_VALID = 1
ARCH_INVALID = 2


async def archive_state(ctx: ProbeContext) -> int:
    """Return ARCH_NOT_ENABLED, ARCH_VALID or ARCH_INVALID.

    Query failures report ARCH_INVALID.
    """
    executor = ctx.executor
    ini = await executor.fetch_one(queries.ARCH_INI, columns=(as_str,))
    if isinstance(ini, QueryError):
        return ARCH_INVALID
    (para_value,) = ini.rows[0]
    if para_value == "0":
        return ARCH_NOT_ENABLED
    if para_value != "1":
        return ARCH_INVALID

    local = await executor.fetch_one(queries.ARCH_LOCAL_STATUS, columns=(as_str,))
    if isinstance(local, QueryError):
        return ARCH_INVALID
    (status,) = local.rows[0]
    return ARCH_VALID if status == "1" else ARCH_INVALID


class ArchStatusProbe(Probe):
    """Overall archive state plus the status of every archive destination.

    ``dmdbms_arch_status`` is -1 when archiving is off, 1 when the local
    archive is valid and 2 otherwise.
    """

    STATUS = MetricDescriptor(
        "dmdbms_arch_status",
        "Information about DM database archive status",
        ("host_name",),
    )
    STATUS_INFO = MetricDescriptor(
        "dmdbms_arch_status_info",
        "Information about DM database archive status, value info: valid = 1, invalid = 0",
        ("arch_type", "arch_dest", "arch_src"),
    )

    descriptors = (STATUS, STATUS_INFO)

    async def query(self) -> list[Row] | None:
        error = await self.ctx.executor.ping()
        if error is not None:
            return None
        state = await archive_state(self.ctx)
        rows: list[Row] = [("status", float(state), None, None, None)]
        if state != ARCH_VALID:
            return rows
        outcome = await self.ctx.executor.execute(
            queries.ARCH_STATUS_DETAIL, columns=(as_float, as_str, as_str, as_str)
        )
        if isinstance(outcome, QueryError):
            return rows
        rows.extend(("detail", *row) for row in outcome.rows)
        return rows

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        for kind, value, arch_type, arch_dest, arch_src in rows:
            if kind == "status":
                sink.append(self.STATUS.sample(value, self.ctx.hostname))
                continue
            sink.append(
                self.STATUS_INFO.sample(
                    null_float_to_float(value),
                    null_string_to_string(arch_type),
                    null_string_to_string(arch_dest),
                    null_string_to_string(arch_src),
                )
            )


class ArchSendProbe(RowProbe):
    """LSN lag between the local archive and each send destination.

    Older servers lack ``V$ARCH_APPLY_INFO`` and the ``LAST_SEND_CODE`` /
    ``LAST_SEND_DESC`` columns; the query is adjusted accordingly.
    """

    DETAIL = MetricDescriptor(
        "dmdbms_arch_send_detail_info",
        "Information about DM database archive send detail info, "
        "return MAX_SEND_LSN - LAST_SEND_LSN = diffValue",
        ("arch_type", "arch_dest"),
    )
    DIFF = MetricDescriptor(
        "dmdbms_arch_send_diff_value",
        "Information about DM database archive send diff value, "
        "return MAX_SEND_LSN - LAST_SEND_LSN = diffValue",
        ("arch_type", "arch_dest"),
    )

    descriptors = (DETAIL, DIFF)
    columns = (as_str, as_str, as_float, as_str, as_str, as_str, as_str, as_str)

    async def gate(self) -> bool:
        return await archive_state(self.ctx) == ARCH_VALID

    async def build_sql(self) -> str:
        if await self.ctx.has_view("V$ARCH_APPLY_INFO"):
            template = queries.ARCH_SEND_DETAIL_WITH_APPLY
        else:
            template = queries.ARCH_SEND_DETAIL
        present = await self.ctx.has_columns(
            "V$ARCH_SEND_INFO", ("LAST_SEND_CODE", "LAST_SEND_DESC")
        )
        return template.format(
            last_send_code=queries.optional_column("LAST_SEND_CODE", present, "S."),
            last_send_desc=queries.optional_column("LAST_SEND_DESC", present, "S."),
        )

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        arch_dest, arch_type, lsn_diff = row[:3]
        labels = (null_string_to_string(arch_type), null_string_to_string(arch_dest))
        value = null_float_to_float(lsn_diff)
        sink.append(self.DETAIL.sample(value, *labels))
        sink.append(self.DIFF.sample(value, *labels))


class ArchSwitchProbe(Probe):
    """Minutes between the two most recent archive file switches.

    With archiving off or invalid only ``dmdbms_arch_switch_rate`` is
    reported, as 0.
    """

    RATE = MetricDescriptor(
        "dmdbms_arch_switch_rate",
        "Information about DM database archive switch rate, "
        "always output the most recent piece of data",
    )
    RATE_DETAIL = MetricDescriptor(
        "dmdbms_arch_switch_rate_detail_info",
        "Information about DM database archive switch rate info",
    )

    descriptors = (RATE, RATE_DETAIL)
    columns = (as_str, as_str, as_str, as_str, as_str, as_float)

    async def query(self) -> list[Row] | None:
        if await archive_state(self.ctx) != ARCH_VALID:
            return [("off", 0.0)]
        outcome = await self.ctx.executor.execute(
            queries.ARCH_SWITCH_RATE, columns=self.columns
        )
        if isinstance(outcome, QueryError):
            return None
        minus_diff = null_float_to_float(outcome.rows[0][5]) if outcome.rows else 0.0
        return [("rate", minus_diff)]

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        for kind, minus_diff in rows:
            sink.append(self.RATE.sample(minus_diff))
            if kind == "rate":
                sink.append(self.RATE_DETAIL.sample(minus_diff))
