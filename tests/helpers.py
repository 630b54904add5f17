"""Test doubles shared across unit, integration and BDD tests."""

import asyncio
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from dmexporter.core.errors import ConnectivityError


@dataclass
class Scripted:
    """Canned response for statements matching a fragment."""

    rows: list[Sequence[Any]] = field(default_factory=list)
    error: BaseException | None = None
    delay: float = 0.0


class FakeConnection:
    """Scriptable ConnectionPort double.

    Responses are looked up by exact statement first, then by substring.
    Later scripts win over earlier ones. Statements without a script fail
    the way a missing view does on a real server.
    """

    def __init__(self, source_id: str = "fake-dm") -> None:
        self.source_id = source_id
        self.connected = True
        self.calls: list[str] = []
        self._scripts: list[tuple[str, Scripted]] = []

    def script(
        self,
        fragment: str,
        rows: list[Sequence[Any]] | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self._scripts.insert(0, (fragment, Scripted(rows or [], error, delay)))

    def script_view(self, view: str, present: bool = True) -> None:
        """Script the existence check for a dynamic view."""
        self.script(f"NAME = '{view.upper()}'", rows=[(1 if present else 0,)])

    def _lookup(self, sql: str) -> Scripted | None:
        for fragment, scripted in self._scripts:
            if fragment == sql:
                return scripted
        for fragment, scripted in self._scripts:
            if fragment in sql:
                return scripted
        return None

    async def fetch_all(self, sql: str) -> list[tuple[Any, ...]]:
        self.calls.append(sql)
        if not self.connected:
            raise ConnectivityError("connection refused")
        scripted = self._lookup(sql)
        if scripted is None:
            raise RuntimeError(f"invalid table or view name: {' '.join(sql.split())}")
        if scripted.delay:
            await asyncio.sleep(scripted.delay)
        if scripted.error is not None:
            raise scripted.error
        return [tuple(row) for row in scripted.rows]

    async def ping(self) -> None:
        if not self.connected:
            raise ConnectivityError("connection refused")

    def count(self, fragment: str) -> int:
        """Return how many executed statements contain ``fragment``."""
        return sum(1 for sql in self.calls if fragment in sql)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def samples_named(samples: list[Any], name: str) -> list[Any]:
    """Return the samples of one metric."""
    return [s for s in samples if s.name == name]


class BlockingCursor:
    """DB-API cursor whose ``SLOW`` statements block their worker thread."""

    def __init__(self, driver: "BlockingDriver") -> None:
        self._driver = driver
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, sql: str) -> None:
        if "SLOW" in sql:
            self._driver.release.wait(self._driver.max_block)
        self._rows = [(1,)]

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows

    def close(self) -> None:
        pass


class CancellableCursor(BlockingCursor):
    """Blocking cursor that supports driver-side ``cancel``."""

    def cancel(self) -> None:
        self._driver.cancels += 1
        self._driver.release.set()


class BlockingConnection:
    def __init__(self, driver: "BlockingDriver") -> None:
        self._driver = driver
        self.closed = False

    def cursor(self) -> BlockingCursor:
        if self._driver.cancellable:
            return CancellableCursor(self._driver)
        return BlockingCursor(self._driver)

    def close(self) -> None:
        self.closed = True


class BlockingDriver:
    """DB-API driver double whose slow statements hold a real thread.

    Set ``release`` at the end of a test so stuck workers finish.
    """

    def __init__(self, cancellable: bool = False, max_block: float = 3.0) -> None:
        self.cancellable = cancellable
        self.max_block = max_block
        self.release = threading.Event()
        self.cancels = 0
        self.connections: list[BlockingConnection] = []

    def connect(self) -> BlockingConnection:
        conn = BlockingConnection(self)
        self.connections.append(conn)
        return conn
