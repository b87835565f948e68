"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from collections import deque
from pathlib import Path

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without installing the package."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from sayitdone.errors import RecognizerError  # noqa: E402
from sayitdone.services.recognizer import RecognitionEvent  # noqa: E402


class ManualCall:
    def __init__(self, dispatcher: "ManualDispatcher", due: float, fn, args) -> None:
        self.dispatcher = dispatcher
        self.due = due
        self.fn = fn
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> None:
        if not self.cancelled:
            self.fn(*self.args)


class ManualDispatcher:
    """Single-threaded stand-in for SerialDispatcher with virtual time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: deque = deque()
        self.calls: list[ManualCall] = []
        self.started = False

    def clock(self) -> float:
        return self.now

    def post(self, fn, *args) -> None:
        self._queue.append((fn, args))

    def call_later(self, delay, fn, *args) -> ManualCall:
        call = ManualCall(self, self.now + delay, fn, args)
        self.calls.append(call)
        return call

    def start(self) -> None:
        self.started = True

    def run_pending(self) -> None:
        while self._queue:
            fn, args = self._queue.popleft()
            fn(*args)

    def fire_due(self) -> None:
        """Queue every due timer without running the queue (a timer thread firing)."""
        for call in sorted(self.calls, key=lambda item: item.due):
            if not call.fired and not call.cancelled and call.due <= self.now:
                call.fired = True
                self.post(call.run)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        self.run_pending()
        while True:
            due = [c for c in self.calls if not c.fired and not c.cancelled and c.due <= target]
            if not due:
                break
            nxt = min(due, key=lambda item: item.due)
            self.now = max(self.now, nxt.due)
            nxt.fired = True
            self.post(nxt.run)
            self.run_pending()
        self.now = target
        self.run_pending()

    def pending_timers(self) -> list[ManualCall]:
        return [c for c in self.calls if not c.fired and not c.cancelled]


class FakeRecognizer:
    def __init__(self, *, start_error: Exception | None = None, finish_on_end: bool = True) -> None:
        self.start_error = start_error
        self.finish_on_end = finish_on_end
        self.last_text = ""
        self.preload_count = 0
        self.end_count = 0
        self.listener = None
        self.listeners: list = []
        self.appended = 0
        self.start_count = 0
        self.cancel_count = 0

    def preload(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.preload_count += 1

    def start(self, listener) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.start_count += 1
        self.last_text = ""
        self.listener = listener
        self.listeners.append(listener)

    def append(self, samples) -> None:
        self.appended += 1

    def end_audio(self) -> None:
        """Like the real recognizer: a final result of everything heard so far."""
        self.end_count += 1
        if self.finish_on_end and self.listener is not None:
            self.final(self.last_text)

    def cancel(self) -> None:
        self.cancel_count += 1

    def partial(self, text: str) -> None:
        self.last_text = text
        self.listener(RecognitionEvent(text=text))

    def final(self, text: str) -> None:
        self.last_text = text
        self.listener(RecognitionEvent(text=text, is_final=True))

    def fail(self, exc: Exception) -> None:
        self.listener(RecognitionEvent(error=exc))


@pytest.fixture
def dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def stalled_recognizer() -> FakeRecognizer:
    return FakeRecognizer(finish_on_end=False)


@pytest.fixture
def failing_recognizer() -> FakeRecognizer:
    return FakeRecognizer(start_error=RecognizerError("model missing"))
