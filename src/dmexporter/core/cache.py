"""TTL result cache shared by every probe.

Entries expire lazily: a read after the expiry time behaves as a miss and
the next successful query overwrites the entry wholesale.
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from dmexporter.core.models import CacheEntry, Row

logger = logging.getLogger(__name__)


def cache_key(metric_name: str, source_id: str) -> str:
    """Build a cache key namespaced by data source and metric name."""
    return f"{source_id}/{metric_name}"


class ResultCache:
    """In-memory TTL cache mapping keys to serialized payloads.

    Safe for concurrent use from several probes and threads. Entries are
    stored as immutable ``CacheEntry`` objects and replaced under a lock,
    so readers never observe a half-written entry.

    Args:
        clock: Monotonic clock returning seconds (injectable for tests).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[str | None, bool]:
        """Return ``(payload, True)`` for a live entry, else ``(None, False)``."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None, False
        return entry.payload, True

    def set(self, key: str, payload: str, ttl: float) -> None:
        """Store ``payload`` under ``key`` for ``ttl`` seconds from now."""
        entry = CacheEntry(key=key, payload=payload, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: str) -> None:
        """Remove an entry if present."""
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def dump_rows(rows: list[Row]) -> str | None:
    """Serialize a row set to JSON, or return None if it is not serializable."""
    try:
        return json.dumps([list(row) for row in rows])
    except (TypeError, ValueError) as e:
        logger.error("Failed to serialize rows for cache: %s", e)
        return None


def load_rows(payload: str) -> list[Row] | None:
    """Deserialize a cached row set, or return None if it is corrupt."""
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.error("Failed to deserialize cached rows: %s", e)
        return None
    if not isinstance(data, list) or not all(isinstance(r, list) for r in data):
        logger.error("Cached payload has unexpected shape: %s", type(data).__name__)
        return None
    return [tuple(row) for row in data]
