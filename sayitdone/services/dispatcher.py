"""Serial coordination thread: every state transition runs here."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

LOGGER = logging.getLogger("sayitdone.dispatch")

_STOP = object()


class ScheduledCall:
    """Handle for a delayed call; cancel() is effective until the call starts."""

    def __init__(self, dispatcher: "SerialDispatcher", delay: float, fn: Callable[..., Any], args: tuple) -> None:
        self._dispatcher = dispatcher
        self._fn = fn
        self._args = args
        self._cancelled = threading.Event()
        self._timer = threading.Timer(max(0.0, delay), self._fire)
        self._timer.daemon = True

    def _fire(self) -> None:
        if not self._cancelled.is_set():
            self._dispatcher.post(self._run)

    def _run(self) -> None:
        # The timer may have fired before cancel(); re-check on the dispatch thread.
        if self._cancelled.is_set():
            return
        self._fn(*self._args)

    def start(self) -> "ScheduledCall":
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class SerialDispatcher:
    def __init__(self, name: str = "sayitdone-dispatch") -> None:
        self.name = name
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        if not self._thread:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout=timeout)
        self._thread = None

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> ScheduledCall:
        return ScheduledCall(self, delay, fn, args).start()

    def flush(self, timeout: float | None = 2.0) -> bool:
        """Block until every call posted before this one has run."""
        if threading.current_thread() is self._thread:
            raise RuntimeError("flush() called from the dispatch thread")
        done = threading.Event()
        self.post(done.set)
        return done.wait(timeout)

    def in_dispatch_thread(self) -> bool:
        return threading.current_thread() is self._thread

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            fn, args = item
            try:
                fn(*args)
            except Exception:
                LOGGER.exception("Dispatched call %r failed", fn)
