"""Instance-level probes: host resources, memory, sessions and logs."""

import logging
from collections.abc import Hashable

from dmexporter.core.coercion import (
    as_float,
    as_int,
    as_str,
    null_float_to_float,
    null_float_to_string,
    null_int_to_float,
    null_string_to_string,
)
from dmexporter.core.models import (
    MetricDescriptor,
    MetricKind,
    QueryError,
    Row,
    Sample,
)
from dmexporter.core.probe import RowProbe
from dmexporter.probes import queries

logger = logging.getLogger(__name__)

LOCKED_STATUSES = frozenset({"锁定", "LOCKED"})

DUAL_FAILURE = 0.0


class SystemInfoProbe(RowProbe):
    """Host CPU, memory and disk figures as seen by the database server.

    ``dmdbms_system_base_info`` is always 1 and carries the raw figures as
    labels; the CPU and memory gauges are emitted only when reported.
    """

    BASE = MetricDescriptor(
        "dmdbms_system_base_info",
        "Information about DM database system info, value is always 1",
        ("host_name", "n_cpu", "total_phy_size", "total_vir_size", "total_disk_size"),
    )
    CPU = MetricDescriptor(
        "dmdbms_system_cpu_info",
        "Information about DM database system CPU cores",
        ("host_name",),
    )
    MEMORY = MetricDescriptor(
        "dmdbms_system_memory_info",
        "Information about DM database system physical memory size",
        ("host_name",),
    )

    descriptors = (BASE, CPU, MEMORY)
    sql = queries.SYSTEM_INFO
    columns = (as_float, as_float, as_float, as_float)

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        if not rows:
            return
        n_cpu, total_phy, total_vir, total_disk = rows[0]
        host = self.ctx.hostname
        sink.append(
            self.BASE.sample(
                1,
                host,
                null_float_to_string(n_cpu),
                null_float_to_string(total_phy),
                null_float_to_string(total_vir),
                null_float_to_string(total_disk),
            )
        )
        if n_cpu is not None:
            sink.append(self.CPU.sample(n_cpu, host))
        if total_phy is not None:
            sink.append(self.MEMORY.sample(total_phy, host))


class MemoryPoolProbe(RowProbe):
    TOTAL = MetricDescriptor(
        "dmdbms_memory_total_pool_info",
        "Information about DM database memory pool total size",
        ("host_name", "pool_type"),
    )
    CURRENT = MetricDescriptor(
        "dmdbms_memory_curr_pool_info",
        "Information about DM database memory pool current size",
        ("host_name", "pool_type"),
    )

    descriptors = (TOTAL, CURRENT)
    sql = queries.MEMORY_POOL_INFO
    columns = (as_str, as_float, as_float, as_float)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        zone_type, current, _reserved, total = row
        labels = (self.ctx.hostname, null_string_to_string(zone_type))
        sink.append(self.TOTAL.sample(null_float_to_float(total), *labels))
        sink.append(self.CURRENT.sample(null_float_to_float(current), *labels))


class JobErrorProbe(RowProbe):
    """Failed scheduled jobs over the last day.

    The job schema only exists once the job subsystem has been initialised;
    its absence is reported as a warning and nothing is emitted.
    """

    ERROR_NUM = MetricDescriptor(
        "dmdbms_joblog_error_num",
        "Information about DM database job error count in the last day",
        ("host_name",),
    )

    descriptors = (ERROR_NUM,)
    sql = queries.JOB_ERROR_COUNT
    columns = (as_int,)

    def on_failure(self, error: QueryError) -> list[Row] | None:
        if "SYSJOB" in error.message.upper():
            logger.warning(
                "Job subsystem is not initialised, job errors are not collected. "
                "Run SP_INIT_JOB_SYS(1) to enable it.",
                extra={"probe": self.name, "source_id": self.ctx.source_id},
            )
        return None

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        error_num = rows[0][0] if rows else None
        sink.append(self.ERROR_NUM.sample(null_int_to_float(error_num), self.ctx.hostname))


class MonitorInfoProbe(RowProbe):
    """Data watch monitors connected to this instance."""

    MONITOR = MetricDescriptor(
        "dmdbms_monitor_info",
        "Information about DM database monitor, value is MID",
        ("host_name", "dw_conn_time", "mon_confirm", "mon_id", "mon_ip", "mon_version"),
    )

    descriptors = (MONITOR,)
    sql = queries.MONITOR_INFO
    columns = (as_str, as_str, as_str, as_str, as_str, as_float)

    async def gate(self) -> bool:
        return await self.ctx.has_view("V$DMMONITOR")

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        *labels, mid = row
        sink.append(
            self.MONITOR.sample(
                null_float_to_float(mid),
                self.ctx.hostname,
                *(null_string_to_string(v) for v in labels),
            )
        )


class StatementTypeProbe(RowProbe):
    STATEMENTS = MetricDescriptor(
        "dmdbms_statement_type_total",
        "Total number of executed statements by type",
        ("host_name", "statement_name"),
        kind=MetricKind.COUNTER,
    )

    descriptors = (STATEMENTS,)
    sql = queries.STATEMENT_TYPE_COUNT
    columns = (as_str, as_float)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        name, stat_val = row
        sink.append(
            self.STATEMENTS.sample(
                null_float_to_float(stat_val),
                self.ctx.hostname,
                null_string_to_string(name),
            )
        )


class ParameterProbe(RowProbe):
    PARAMETER = MetricDescriptor(
        "dmdbms_parameter_info",
        "Information about DM database parameter values",
        ("host_name", "param_name"),
    )

    descriptors = (PARAMETER,)
    sql = queries.PARAMETER_INFO
    columns = (as_str, as_float)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        name, value = row
        sink.append(
            self.PARAMETER.sample(
                null_float_to_float(value),
                self.ctx.hostname,
                null_string_to_string(name),
            )
        )


class UserListProbe(RowProbe):
    """One series per database user; the value is 1 for locked accounts."""

    USER = MetricDescriptor(
        "dmdbms_user_list_info",
        "Information about DM database users, value 1 means the account is locked",
        (
            "host_name",
            "username",
            "read_only",
            "expiry_date",
            "expiry_date_day",
            "default_tablespace",
            "profile",
            "create_time",
        ),
    )

    descriptors = (USER,)
    sql = queries.USER_LIST_INFO
    columns = (as_str,) * 8

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        (
            username,
            read_only,
            account_status,
            expiry_date,
            expiry_date_day,
            default_tablespace,
            profile,
            create_time,
        ) = (null_string_to_string(v) for v in row)
        locked = 1 if account_status.strip().upper() in LOCKED_STATUSES else 0
        sink.append(
            self.USER.sample(
                locked,
                self.ctx.hostname,
                username,
                read_only,
                expiry_date,
                expiry_date_day,
                default_tablespace,
                profile,
                create_time,
            )
        )


class BufferPoolProbe(RowProbe):
    HIT_RATE = MetricDescriptor(
        "dmdbms_bufferpool_info",
        "Information about DM database buffer pool hit rate",
        ("buffer_name",),
    )

    descriptors = (HIT_RATE,)
    sql = queries.BUFFER_POOL_HIT_RATE
    columns = (as_str, as_float)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        name, hit_rate = row
        sink.append(
            self.HIT_RATE.sample(null_float_to_float(hit_rate), null_string_to_string(name))
        )


class DualProbe(RowProbe):
    """Liveness check: 1 when ``SELECT 1 FROM DUAL`` answers, 0 otherwise."""

    DUAL = MetricDescriptor(
        "dmdbms_dual_info",
        "Information about DM database query dual table, return 1 is success, 0 is failure",
    )

    descriptors = (DUAL,)
    sql = queries.DUAL
    columns = (as_float,)

    def on_failure(self, error: QueryError) -> list[Row] | None:
        return [(DUAL_FAILURE,)]

    def emit(self, rows: list[Row], sink: list[Sample]) -> None:
        value = rows[0][0] if rows else None
        if value is None:
            value = DUAL_FAILURE
        sink.append(self.DUAL.sample(value))


class PurgeProbe(RowProbe):
    OBJECTS = MetricDescriptor(
        "dmdbms_purge_objects_info",
        "Information about DM database purge objects count",
        ("host_name",),
    )

    descriptors = (OBJECTS,)
    sql = queries.PURGE_INFO
    columns = (as_float, as_str, as_str)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        sink.append(self.OBJECTS.sample(null_float_to_float(row[0]), self.ctx.hostname))


class RapplyTimeDiffProbe(RowProbe):
    TIME_DIFF = MetricDescriptor(
        "dmdbms_rapply_time_diff",
        "Seconds since the standby last applied redo",
        ("host_name",),
    )

    descriptors = (TIME_DIFF,)
    sql = queries.RAPPLY_TIME_DIFF
    columns = (as_float,)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        sink.append(self.TIME_DIFF.sample(null_float_to_float(row[0]), self.ctx.hostname))


class InstanceLogErrorProbe(RowProbe):
    """Recent ERROR and FATAL entries from the instance log.

    The log history view can repeat an entry; repeats are collapsed on
    (pid, level, log_time, txt).
    """

    LOG_ERROR = MetricDescriptor(
        "dmdbms_instance_log_error_info",
        "Information about DM database instance log errors",
        ("pid", "level", "log_time", "txt"),
    )

    descriptors = (LOG_ERROR,)
    dedupe = True
    sql = queries.INSTANCE_ERROR_LOG
    columns = (as_str, as_str, as_str, as_str)

    def dedupe_key(self, row: Row) -> Hashable:
        log_time, pid, level, txt = (null_string_to_string(v) for v in row)
        return (pid, level, log_time, txt)

    def emit_row(self, row: Row, sink: list[Sample]) -> None:
        log_time, pid, level, txt = (null_string_to_string(v) for v in row)
        sink.append(self.LOG_ERROR.sample(1, pid, level, log_time, txt))
