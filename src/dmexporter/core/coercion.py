"""Null-safe coercion of query results into metric values.

Database drivers return ``None`` for NULL columns. A single missing column
must never abort an otherwise successful probe cycle, so the ``null_*``
helpers map ``None`` to a neutral default instead of raising.

The ``as_*`` scanners are the stricter counterpart used while reading rows:
they keep ``None`` but raise ``ScanError`` for values that cannot be
represented in the column's type, which lets the executor skip that row.
"""

import math
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from dmexporter.core.errors import ScanError

Scanner = Callable[[Any], Any]


def null_float_to_float(value: float | None) -> float:
    """Return ``value`` as float, or 0.0 when it is NULL."""
    if value is None:
        return 0.0
    return float(value)


def null_int_to_float(value: int | None) -> float:
    """Return ``value`` as float, or 0.0 when it is NULL."""
    if value is None:
        return 0.0
    return float(value)


def null_string_to_string(value: str | None) -> str:
    """Return ``value`` unchanged, or an empty string when it is NULL."""
    if value is None:
        return ""
    return value


def null_float_to_string(value: float | None) -> str:
    """Render a nullable float for use as a label value.

    Integral values drop the fractional part (``8.0`` becomes ``"8"``).
    """
    if value is None:
        return ""
    number = float(value)
    if math.isfinite(number) and number.is_integer():
        return str(int(number))
    return repr(number)


def as_float(raw: Any) -> float | None:
    """Scan a raw driver value into a nullable float."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, Decimal):
        return float(raw)
    if isinstance(raw, (str, bytes)):
        text = raw.decode() if isinstance(raw, bytes) else raw
        try:
            return float(Decimal(text.strip()))
        except (InvalidOperation, ValueError) as e:
            raise ScanError(f"cannot scan {raw!r} as float") from e
    raise ScanError(f"cannot scan {type(raw).__name__} as float")


def as_int(raw: Any) -> int | None:
    """Scan a raw driver value into a nullable integer."""
    value = as_float(raw)
    if value is None:
        return None
    if not math.isfinite(value) or not value.is_integer():
        raise ScanError(f"cannot scan {raw!r} as int")
    return int(value)


def as_str(raw: Any) -> str | None:
    """Scan a raw driver value into a nullable string."""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        try:
            return raw.decode()
        except UnicodeDecodeError as e:
            raise ScanError("cannot decode bytes as text") from e
    return str(raw)


def scan_row(raw: Any, columns: tuple[Scanner, ...]) -> tuple[Any, ...]:
    """Scan one raw row using one scanner per column.

    Raises:
        ScanError: If the arity differs or any column fails to scan.
    """
    try:
        values = tuple(raw)
    except TypeError as e:
        raise ScanError("row is not a sequence") from e
    if len(values) != len(columns):
        raise ScanError(f"expected {len(columns)} columns, got {len(values)}")
    return tuple(scan(value) for scan, value in zip(columns, values))
