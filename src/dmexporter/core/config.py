"""Engine configuration."""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from dmexporter.core.errors import ConfigError

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_duration(value: str | int | float) -> float:
    """Convert a duration such as ``500ms``, ``10s``, ``5m`` or ``2h`` to seconds.

    Bare numbers are seconds.

    Raises:
        ConfigError: If the value is not a valid duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(value)
    if match is None:
        raise ConfigError(f"invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit or "s"]


def parse_bool(value: str | bool) -> bool:
    """Parse a boolean toggle.

    Raises:
        ConfigError: If the value is not a recognised boolean.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"invalid boolean: {value!r}")


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration consumed by the engine.

    Attributes:
        query_timeout: Per-query deadline in seconds.
        capability_timeout: Deadline for capability detection in seconds.
        cache_ttl: Result cache time-to-live in seconds.
        register_host_metrics: Enable host-level probes.
        register_database_metrics: Enable database-level probes.
        register_middleware_metrics: Enable middleware probes.
    """

    query_timeout: float = 5.0
    capability_timeout: float = 2.0
    cache_ttl: float = 300.0
    register_host_metrics: bool = True
    register_database_metrics: bool = True
    register_middleware_metrics: bool = False

    def __post_init__(self) -> None:
        for name in ("query_timeout", "capability_timeout", "cache_ttl"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigError(f"{name} must be positive, got {value!r}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a mapping of field names to raw values.

        Unknown keys are rejected so that typos do not pass silently.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = set(values) - set(known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        parsed: dict[str, Any] = {}
        for key, raw in values.items():
            if known[key].type in (bool, "bool"):
                parsed[key] = parse_bool(raw)
            else:
                parsed[key] = parse_duration(raw)
        return cls(**parsed)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = "DMEXPORTER_",
    ) -> "EngineConfig":
        """Build a config from environment variables.

        ``DMEXPORTER_QUERY_TIMEOUT=10s`` sets ``query_timeout`` and so on.
        """
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is not None:
                values[f.name] = raw
        return cls.from_mapping(values)
