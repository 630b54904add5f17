"""Ring buffer storage for log notices.

Provides bounded in-memory storage that automatically evicts oldest
entries when the buffer is full, so a noisy failing probe cannot grow
memory without limit.
"""

import threading
from collections import deque
from collections.abc import AsyncIterable

from dmexporter.core.models import LogEntry


class RingBufferLogStorage:
    """Ring buffer implementation of LogStoragePort.

    Stores log entries in a fixed-size circular buffer. When the buffer
    is full, the oldest entry is automatically evicted to make room for
    new entries. Writes may come from any thread.

    Args:
        max_size: Maximum number of entries to store.
    """

    def __init__(self, max_size: int = 1000) -> None:
        self._buffer: deque[LogEntry] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def write_sync(self, entry: LogEntry) -> None:
        """Write a log entry to storage."""
        with self._lock:
            self._buffer.append(entry)

    async def write(self, entry: LogEntry) -> None:
        """Write a log entry to storage."""
        self.write_sync(entry)

    async def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[LogEntry]:
        """Read log entries since the given timestamp.

        Returns entries with timestamp > since, ordered by timestamp ascending,
        optionally restricted to one level.
        """
        with self._lock:
            snapshot = list(self._buffer)
        wanted = level.upper() if level else None
        filtered = [
            e
            for e in snapshot
            if e.timestamp > since and (wanted is None or e.level.upper() == wanted)
        ]
        for entry in sorted(filtered, key=lambda e: e.timestamp):
            yield entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)
