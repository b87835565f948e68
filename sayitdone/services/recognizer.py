"""Speech recognizer contract + lazy faster-whisper implementation."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

import numpy as np

from ..errors import RecognizerError

LOGGER = logging.getLogger("sayitdone.whisper")

WHISPER_SAMPLE_RATE = 16_000


@dataclass(frozen=True, slots=True)
class RecognitionEvent:
    text: str = ""
    is_final: bool = False
    error: Exception | None = None


RecognitionListener = Callable[[RecognitionEvent], None]


class Recognizer(Protocol):
    def preload(self) -> None:
        """Load heavy resources up front; raise RecognizerError if unavailable."""

    def start(self, listener: RecognitionListener) -> None:
        """Begin a recognition task; raise RecognizerError if it cannot start."""

    def append(self, samples: np.ndarray) -> None: ...

    def end_audio(self) -> None:
        """No more audio; deliver a final result."""

    def cancel(self) -> None:
        """Abandon the task without delivering further events."""


class WhisperRecognizer:
    """Buffers audio on a worker thread and decodes it with faster-whisper.

    A partial transcript is emitted every ``partial_interval`` seconds of new
    audio; ``end_audio()`` emits the final transcript of everything heard.
    """

    def __init__(
        self,
        *,
        model_name: str = "tiny",
        device: str = "cpu",
        compute_type: str = "int8",
        language: str | None = "en",
        sample_rate: int = WHISPER_SAMPLE_RATE,
        partial_interval: float = 1.0,
        model=None,
    ) -> None:
        self.model_name = model_name
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self.sample_rate = int(sample_rate)
        self.partial_samples = max(1, int(self.sample_rate * partial_interval))
        self._model = model
        self._model_lock = threading.Lock()
        self._inbox: queue.Queue | None = None
        self._thread: threading.Thread | None = None
        self._cancelled = threading.Event()

    @classmethod
    def from_config(cls, config) -> "WhisperRecognizer":
        return cls(
            model_name=config.whisper_model,
            device=config.whisper_device,
            compute_type=config.whisper_compute_type,
            language=config.whisper_language,
            sample_rate=config.sample_rate,
            partial_interval=config.partial_interval,
        )

    def _load_model(self):
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    try:
                        from faster_whisper import WhisperModel

                        self._model = WhisperModel(
                            self.model_name,
                            device=self.device,
                            compute_type=self.compute_type,
                        )
                    except Exception as exc:
                        LOGGER.error("Failed to load Whisper model '%s': %s", self.model_name, exc)
                        raise RecognizerError(f"Whisper model '{self.model_name}' unavailable: {exc}") from exc
        return self._model

    def preload(self) -> None:
        self._load_model()
        LOGGER.info("Whisper model '%s' ready", self.model_name)

    def start(self, listener: RecognitionListener) -> None:
        self.cancel()
        model = self._load_model()
        self._cancelled = threading.Event()
        self._inbox = queue.Queue()
        self._thread = threading.Thread(
            target=self._run,
            args=(model, listener, self._inbox, self._cancelled),
            name="sayitdone-whisper",
            daemon=True,
        )
        self._thread.start()

    def append(self, samples: np.ndarray) -> None:
        if self._inbox is not None:
            self._inbox.put(np.asarray(samples, dtype=np.float32).copy())

    def end_audio(self) -> None:
        if self._inbox is not None:
            self._inbox.put(None)
            self._inbox = None

    def cancel(self) -> None:
        self._cancelled.set()
        if self._inbox is not None:
            self._inbox.put(None)
            self._inbox = None

    def _run(self, model, listener: RecognitionListener, inbox: queue.Queue, cancelled: threading.Event) -> None:
        chunks: list[np.ndarray] = []
        pending = 0
        while True:
            item = inbox.get()
            if cancelled.is_set():
                return
            if item is None:
                break
            chunks.append(item)
            pending += len(item)
            if pending < self.partial_samples:
                continue
            pending = 0
            if not self._emit(model, listener, chunks, cancelled, is_final=False):
                return
        self._emit(model, listener, chunks, cancelled, is_final=True)

    def _emit(self, model, listener, chunks, cancelled, *, is_final: bool) -> bool:
        try:
            text = self.transcribe(model, np.concatenate(chunks) if chunks else np.zeros(0, np.float32))
        except Exception as exc:
            LOGGER.warning("Whisper decode failed: %s", exc)
            if not cancelled.is_set():
                listener(RecognitionEvent(error=exc))
            return False
        if cancelled.is_set():
            return False
        listener(RecognitionEvent(text=text, is_final=is_final))
        return True

    def transcribe(self, model, audio: np.ndarray) -> str:
        if audio.size == 0:
            return ""
        audio = _resample(audio, self.sample_rate, WHISPER_SAMPLE_RATE)
        segments, _info = model.transcribe(audio, language=self.language, beam_size=5)
        return _join_segments(segments)


def _resample(audio: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate:
        return audio.astype(np.float32, copy=False)
    duration = len(audio) / float(source_rate)
    target_len = max(1, int(round(duration * target_rate)))
    source_times = np.linspace(0.0, duration, num=len(audio), endpoint=False)
    target_times = np.linspace(0.0, duration, num=target_len, endpoint=False)
    return np.interp(target_times, source_times, audio).astype(np.float32)


def _join_segments(segments: Iterable) -> str:
    pieces = [segment.text.strip() for segment in segments]
    return " ".join(piece for piece in pieces if piece).strip()


__all__ = ["RecognitionEvent", "RecognitionListener", "Recognizer", "WhisperRecognizer"]
