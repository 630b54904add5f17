"""Async-to-sync bridge for callers without an event loop."""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


class LoopThread:
    """Event loop running forever in a daemon thread.

    Synchronous callers submit coroutines with ``run``. The loop outlives
    each call, so worker threads left behind by timed-out queries never
    hold up the caller, and loop-bound connections stay usable between
    calls. The loop starts on first use.

    Args:
        name: Name of the loop thread.
    """

    def __init__(self, name: str = "dmexporter-loop") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    def _ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever, name=self._name, daemon=True
                )
                thread.start()
                self._loop, self._thread = loop, thread
            return self._loop

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run ``coro`` on the loop thread and wait for its result.

        Raises:
            RuntimeError: If called from the loop thread itself.
            TimeoutError: If ``timeout`` elapses first; the coroutine is
                cancelled.
        """
        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError("LoopThread.run called from its own loop thread")
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_started())
        try:
            return future.result(timeout)
        except TimeoutError:
            future.cancel()
            raise

    def stop(self) -> None:
        """Stop the loop and join its thread. A later ``run`` restarts it."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        # Executor workers still stuck in driver calls are not awaited.
        loop.close()
