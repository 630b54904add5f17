"""Probe catalogue for DM database instances.

Probes are grouped by the scope they observe. ``select_probes`` returns the
probe classes enabled by an ``EngineConfig``, in registration order.
"""

from dmexporter.core.config import EngineConfig
from dmexporter.core.probe import Probe
from dmexporter.probes.archive import ArchSendProbe, ArchStatusProbe, ArchSwitchProbe
from dmexporter.probes.instance import (
    BufferPoolProbe,
    DualProbe,
    InstanceLogErrorProbe,
    JobErrorProbe,
    MemoryPoolProbe,
    MonitorInfoProbe,
    ParameterProbe,
    PurgeProbe,
    RapplyTimeDiffProbe,
    StatementTypeProbe,
    SystemInfoProbe,
    UserListProbe,
)
from dmexporter.probes.tablespace import TablespaceFileProbe, TablespaceProbe
from dmexporter.probes.version import VersionProbe

HOST_PROBES: tuple[type[Probe], ...] = (SystemInfoProbe,)

DATABASE_PROBES: tuple[type[Probe], ...] = (
    TablespaceProbe,
    TablespaceFileProbe,
    MemoryPoolProbe,
    JobErrorProbe,
    MonitorInfoProbe,
    StatementTypeProbe,
    ParameterProbe,
    UserListProbe,
    VersionProbe,
    ArchStatusProbe,
    ArchSendProbe,
    ArchSwitchProbe,
    BufferPoolProbe,
    DualProbe,
    PurgeProbe,
    RapplyTimeDiffProbe,
    InstanceLogErrorProbe,
)

MIDDLEWARE_PROBES: tuple[type[Probe], ...] = ()

PROBE_GROUPS: dict[str, tuple[type[Probe], ...]] = {
    "host": HOST_PROBES,
    "database": DATABASE_PROBES,
    "middleware": MIDDLEWARE_PROBES,
}


def select_probes(config: EngineConfig) -> list[type[Probe]]:
    """Return the probe classes enabled by ``config``."""
    enabled = {
        "host": config.register_host_metrics,
        "database": config.register_database_metrics,
        "middleware": config.register_middleware_metrics,
    }
    return [
        probe
        for group, probes in PROBE_GROUPS.items()
        if enabled[group]
        for probe in probes
    ]


__all__ = [
    "ArchSendProbe",
    "ArchStatusProbe",
    "ArchSwitchProbe",
    "BufferPoolProbe",
    "DATABASE_PROBES",
    "DualProbe",
    "HOST_PROBES",
    "InstanceLogErrorProbe",
    "JobErrorProbe",
    "MIDDLEWARE_PROBES",
    "MemoryPoolProbe",
    "MonitorInfoProbe",
    "PROBE_GROUPS",
    "ParameterProbe",
    "PurgeProbe",
    "RapplyTimeDiffProbe",
    "StatementTypeProbe",
    "SystemInfoProbe",
    "TablespaceFileProbe",
    "TablespaceProbe",
    "UserListProbe",
    "VersionProbe",
    "select_probes",
]
