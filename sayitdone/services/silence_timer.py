"""Resettable one-shot silence timer."""

from __future__ import annotations

from typing import Any, Callable, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> Cancellable: ...


class SilenceTimeoutController:
    """Fires ``on_timeout`` once if not cancelled within ``timeout`` seconds.

    Arming always invalidates the previous pending timer first, and a stale
    fire (one that raced a cancel) is dropped by generation check.
    """

    def __init__(self, scheduler: Scheduler, timeout: float, on_timeout: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.timeout = max(0.0, float(timeout))
        self.on_timeout = on_timeout
        self._pending: Cancellable | None = None
        self._generation = 0

    @property
    def armed(self) -> bool:
        return self._pending is not None

    def arm(self) -> None:
        self.cancel()
        self._pending = self.scheduler.call_later(self.timeout, self._fire, self._generation)

    def ensure_armed(self) -> None:
        if self._pending is None:
            self.arm()

    def cancel(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._pending = None
        self._generation += 1
        self.on_timeout()
