"""Python logging handler adapter for exporter notices.

This adapter bridges the standard library logging module to a
LogStoragePort, so failure notices raised during collection can be read
back over HTTP.
"""

import logging
import traceback
from types import TracebackType

from dmexporter.core.models import LogEntry
from dmexporter.core.ports import LogStoragePort

Attributes = dict[str, str | int | float | bool]

# Everything a bare LogRecord carries; anything else came in through ``extra``.
_RECORD_FIELDS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_DEFAULT_INCLUDE_ATTRS = ("logger", "funcName", "lineno")


def _origin(record: logging.LogRecord) -> Attributes:
    return {
        "logger": record.name,
        "module": record.module,
        "funcName": record.funcName or "",
        "lineno": record.lineno,
        "pathname": record.pathname,
    }


ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]


def _exception_attrs(exc_info: ExcInfo) -> Attributes:
    exc_type, exc_value, exc_tb = exc_info
    attrs: Attributes = {}
    if exc_type is not None:
        attrs["exc_type"] = exc_type.__name__
    if exc_value is not None:
        attrs["exc_message"] = str(exc_value)
    if exc_tb is not None:
        attrs["exc_traceback"] = "".join(
            traceback.format_exception(exc_type, exc_value, exc_tb)
        )
    return attrs


class NoticeHandler(logging.Handler):
    """Logging handler that keeps collection notices in a LogStoragePort.

    Scalar ``extra`` fields (``cause``, ``sql``, ``probe``, ``source_id``
    and so on) become entry attributes. Non-scalar extras are dropped.

    Example:
        ```python
        from dmexporter.adapters.logging import NoticeHandler
        from dmexporter.adapters.storage import RingBufferLogStorage

        storage = RingBufferLogStorage(max_size=500)
        logging.getLogger("dmexporter").addHandler(NoticeHandler(storage))
        ```
    """

    def __init__(
        self,
        storage: LogStoragePort,
        include_attrs: list[str] | None = None,
        level: int = logging.WARNING,
    ) -> None:
        """Initialize the handler with a log storage backend.

        Args:
            storage: Storage adapter implementing LogStoragePort.
            include_attrs: Record origin fields to keep, out of ``logger``,
                ``module``, ``funcName``, ``lineno`` and ``pathname``.
                Defaults to ``logger``, ``funcName`` and ``lineno``.
            level: Minimum level stored (default WARNING).
        """
        super().__init__(level)
        self._storage = storage
        self._include_attrs = tuple(include_attrs or _DEFAULT_INCLUDE_ATTRS)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._storage.write_sync(self._to_entry(record))
        except Exception:
            self.handleError(record)

    def _to_entry(self, record: logging.LogRecord) -> LogEntry:
        origin = _origin(record)
        attributes: Attributes = {
            key: origin[key] for key in self._include_attrs if key in origin
        }
        attributes.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS and isinstance(value, (str, int, float, bool))
        )
        if record.exc_info:
            attributes.update(_exception_attrs(record.exc_info))
        return LogEntry(
            timestamp=record.created,
            level=record.levelname,
            message=record.getMessage(),
            attributes=attributes,
        )
