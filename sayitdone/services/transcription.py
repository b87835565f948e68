"""Recording lifecycle: Idle -> Listening -> Finalizing -> Idle.

Public methods only post work to the coordination dispatcher; every handler
below a leading underscore runs on that single thread. The finalize guard is
additionally taken under a lock so no two paths can both claim a session.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

import numpy as np

from ..audio.frame_metrics import measure
from ..audio.types import FrameMetrics
from ..audio.voice_activity import SilenceFrameCounter
from ..errors import RecognizerError
from .date_extraction import ExtractedTask, extract
from .logger import LogBuffer
from .metrics import SESSION_COUNTER, SESSION_DURATION, START_REJECTED_COUNTER
from .recognizer import RecognitionEvent, Recognizer
from .silence_timer import Cancellable, SilenceTimeoutController

LOGGER = logging.getLogger("sayitdone.session")

CompletionCallback = Callable[[str, Optional[datetime]], None]


class Dispatcher(Protocol):
    def post(self, fn: Callable[..., Any], *args: Any) -> None: ...

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> Cancellable: ...


class SessionState(str, enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    FINALIZING = "finalizing"


class FinalizeReason(str, enum.Enum):
    STOP = "stop"
    TIMEOUT = "timeout"
    FINAL = "final"
    ERROR = "error"
    MAX_DURATION = "max_duration"


class TranscriptionSession:
    def __init__(
        self,
        recognizer: Recognizer,
        dispatcher: Dispatcher,
        on_complete: CompletionCallback,
        *,
        extractor: Callable[[str], ExtractedTask] = extract,
        silence_timeout: float = 1.5,
        silence_power_threshold: float = 0.006,
        required_silence_frames: int = 8,
        debounce_interval: float = 0.3,
        max_recording_seconds: float = 10.0,
        final_result_timeout: float = 3.0,
        logger: LogBuffer | None = None,
        on_error: Callable[[str], None] | None = None,
        on_text: Callable[[str], None] | None = None,
        on_idle: Callable[[], None] | None = None,
        on_start_rejected: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.recognizer = recognizer
        self.dispatcher = dispatcher
        self.on_complete = on_complete
        self.extractor = extractor
        self.debounce_interval = max(0.0, float(debounce_interval))
        self.max_recording_seconds = max(0.0, float(max_recording_seconds))
        self.final_result_timeout = max(0.0, float(final_result_timeout))
        self.logger = logger
        self.on_error = on_error
        self.on_text = on_text
        self.on_idle = on_idle
        self.on_start_rejected = on_start_rejected
        self.clock = clock

        self.silence_frames = SilenceFrameCounter(silence_power_threshold, required_silence_frames)
        self.silence_timer = SilenceTimeoutController(
            dispatcher, silence_timeout, lambda: self._finalize(FinalizeReason.TIMEOUT)
        )
        self._state = SessionState.IDLE
        self._guard = threading.Lock()
        self._is_finalizing = False
        self._tap_open = False
        self._live_text = ""
        self._stored_final_text = ""
        self._started_at: float | None = None
        self._finalized_at: float | None = None
        self._max_duration_call: Cancellable | None = None
        self._final_wait_call: Cancellable | None = None
        self._pending_reason: FinalizeReason | None = None
        self._session_id = 0

    # -- thread-safe entry points -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not SessionState.IDLE

    @property
    def live_text(self) -> str:
        return self._live_text

    def start(self) -> None:
        self.dispatcher.post(self._handle_start)

    def stop(self) -> None:
        self.dispatcher.post(self._handle_stop)

    def submit_frame(self, samples: np.ndarray, metrics: FrameMetrics | None = None) -> None:
        """Called from the audio thread; only posts."""
        self.dispatcher.post(self.process_frame, samples, metrics)

    # -- coordination-thread handlers ---------------------------------------------

    def _handle_start(self) -> None:
        if self._state is not SessionState.IDLE:
            LOGGER.debug("start() ignored while %s", self._state.value)
            self._reject_start("busy")
            return
        now = self.clock()
        if self._finalized_at is not None and now - self._finalized_at < self.debounce_interval:
            LOGGER.debug("start() ignored inside debounce window")
            self._reject_start("debounce")
            return

        self.silence_frames.reset()
        self.silence_timer.cancel()
        self._is_finalizing = False
        self._stored_final_text = ""
        self._live_text = ""
        self._session_id += 1
        session_id = self._session_id
        try:
            self.recognizer.start(lambda event: self._post_recognition(session_id, event))
        except RecognizerError as exc:
            self._report_error(f"Recognizer failed to start: {exc}")
            return

        self._state = SessionState.LISTENING
        self._tap_open = True
        self._started_at = now
        if self.max_recording_seconds > 0:
            self._max_duration_call = self.dispatcher.call_later(
                self.max_recording_seconds, self._finalize_if_current, session_id, FinalizeReason.MAX_DURATION
            )
        self._status(f"Listening (session {session_id})")

    def _handle_stop(self) -> None:
        if self._state is not SessionState.LISTENING:
            return
        self._finalize(FinalizeReason.STOP)

    def process_frame(self, samples: np.ndarray, metrics: FrameMetrics | None = None) -> None:
        if self._state is not SessionState.LISTENING or not self._tap_open:
            return
        self.recognizer.append(samples)
        if metrics is None:
            metrics = measure(samples)
        if self.silence_frames.observe(metrics):
            self.silence_timer.ensure_armed()
        elif not self.silence_frames.is_silent(metrics):
            self.silence_timer.cancel()

    def _post_recognition(self, session_id: int, event: RecognitionEvent) -> None:
        self.dispatcher.post(self._handle_recognition, session_id, event)

    def _handle_recognition(self, session_id: int, event: RecognitionEvent) -> None:
        if session_id != self._session_id:
            return
        if self._pending_reason is not None:
            self._handle_drained(event)
            return
        if self._state is not SessionState.LISTENING:
            return
        if event.error is not None:
            self._report_error(f"Recognition error: {event.error}")
            self._finalize(FinalizeReason.ERROR)
            return
        # Only changed text counts as new speech.
        if event.text != self._live_text:
            self.silence_timer.cancel()
        if event.is_final:
            self._stored_final_text = event.text
            self._set_live_text(event.text)
            self._finalize(FinalizeReason.FINAL)
            return
        self._set_live_text(event.text)

    def _handle_drained(self, event: RecognitionEvent) -> None:
        """Events arriving after end_audio() while the session waits for its final text."""
        if event.error is not None:
            self._report_error(f"Recognition error: {event.error}")
        elif event.is_final:
            self._stored_final_text = event.text
        else:
            self._set_live_text(event.text)
            return
        self._complete(self._pending_reason)

    def _finalize_if_current(self, session_id: int, reason: FinalizeReason) -> None:
        if session_id == self._session_id:
            self._finalize(reason)

    def _complete_if_current(self, session_id: int) -> None:
        if session_id != self._session_id or self._pending_reason is None:
            return
        LOGGER.warning("No final transcript within %.1fs; using live text", self.final_result_timeout)
        self._complete(self._pending_reason)

    def _claim_finalize(self) -> bool:
        with self._guard:
            if self._is_finalizing or self._state is not SessionState.LISTENING:
                return False
            self._is_finalizing = True
            self._state = SessionState.FINALIZING
            return True

    def _finalize(self, reason: FinalizeReason) -> None:
        """Claim the session, then either complete it or wait for the recognizer to drain.

        Stop, timeout and max-duration end the audio and wait up to
        ``final_result_timeout`` for the final transcript of everything heard.
        """
        if not self._claim_finalize():
            LOGGER.debug("finalize(%s) ignored; session already finalizing or idle", reason.value)
            return
        self.silence_timer.cancel()
        if self._max_duration_call is not None:
            self._max_duration_call.cancel()
            self._max_duration_call = None
        self._tap_open = False
        if reason in (FinalizeReason.FINAL, FinalizeReason.ERROR) or self.final_result_timeout <= 0:
            self._complete(reason)
            return
        self._pending_reason = reason
        self._final_wait_call = self.dispatcher.call_later(
            self.final_result_timeout, self._complete_if_current, self._session_id
        )
        self.recognizer.end_audio()

    def _complete(self, reason: FinalizeReason) -> None:
        if self._state is not SessionState.FINALIZING:
            return
        self._pending_reason = None
        try:
            if self._final_wait_call is not None:
                self._final_wait_call.cancel()
                self._final_wait_call = None
            self.recognizer.cancel()

            text = self._stored_final_text.strip() or self._live_text.strip()
            self._set_live_text("")
            result = self.extractor(text) if text else ExtractedTask("", None)

            if self._started_at is not None:
                SESSION_DURATION.observe(max(0.0, self.clock() - self._started_at))
            SESSION_COUNTER.labels(reason=reason.value, outcome="task" if text else "empty").inc()
            self._status(f"Session finalized ({reason.value}): {result.title!r}")
            self.on_complete(result.title, result.due_date)
        finally:
            self._stored_final_text = ""
            self._started_at = None
            self._finalized_at = self.clock()
            self._state = SessionState.IDLE
            with self._guard:
                self._is_finalizing = False
            if self.on_idle:
                self.on_idle()

    # -- helpers --------------------------------------------------------------------

    def _set_live_text(self, text: str) -> None:
        if text == self._live_text:
            return
        self._live_text = text
        if self.on_text:
            self.on_text(text)

    def _reject_start(self, cause: str) -> None:
        START_REJECTED_COUNTER.labels(cause=cause).inc()
        if self.on_start_rejected:
            self.on_start_rejected(cause)

    def _report_error(self, message: str) -> None:
        self._status(message, error=True)
        if self.on_error:
            self.on_error(message)

    def _status(self, message: str, *, error: bool = False) -> None:
        if self.logger:
            if error:
                self.logger.error(message)
            else:
                self.logger.add(message)
        elif error:
            LOGGER.error(message)
        else:
            LOGGER.info(message)


__all__ = ["FinalizeReason", "SessionState", "TranscriptionSession"]
