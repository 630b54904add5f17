"""Exception types raised by the exporter."""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError, ValueError):
    """Invalid engine configuration."""


class DuplicateMetricError(ExporterError, ValueError):
    """A metric descriptor name was registered twice.

    This is a programming error and must abort startup.
    """


class ConnectivityError(ExporterError, ConnectionError):
    """The database connection is not available.

    Connection adapters raise this instead of driver-specific errors when
    a connection cannot be opened or has been lost.
    """


class ScanError(ExporterError, ValueError):
    """A raw row value could not be converted to its column type."""
