"""Push-style audio sources feeding fixed-size float32 frames to a handler."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

import numpy as np
import soundfile as sf

from ..errors import AudioSourceError
from ..services.logger import LogBuffer
from .frame_metrics import measure
from .types import FrameHandler, FrameMetrics


class _BaseSource:
    def __init__(
        self,
        on_frame: FrameHandler,
        logger: LogBuffer,
        *,
        level_callback: Callable[[float], None] | None = None,
    ) -> None:
        self.on_frame = on_frame
        self.logger = logger
        self.level_callback = level_callback

    def _deliver(self, samples: np.ndarray) -> None:
        mono = self._to_mono_array(samples)
        metrics = measure(mono)
        self._report_level(metrics)
        self.on_frame(mono, metrics)

    def _report_level(self, metrics: FrameMetrics) -> None:
        if not self.level_callback:
            return
        self.level_callback(max(0.0, min(1.0, metrics.peak_power)))

    @staticmethod
    def _to_mono_array(data: np.ndarray) -> np.ndarray:
        data = np.asarray(data, dtype=np.float32)
        if data.ndim == 1:
            return data.copy()
        return data[:, 0].copy()


class MicrophoneSource(_BaseSource):
    """sounddevice input stream; the callback runs on PortAudio's real-time thread."""

    def __init__(
        self,
        on_frame: FrameHandler,
        logger: LogBuffer,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        block_size: int = 512,
        device: int | str | None = None,
        level_callback: Callable[[float], None] | None = None,
    ) -> None:
        super().__init__(on_frame, logger, level_callback=level_callback)
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = block_size
        self.device = device
        self._stream = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return
        try:
            import sounddevice as sd

            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                blocksize=self.block_size,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except Exception as exc:
            self.logger.error(f"Microphone unavailable: {exc}")
            raise AudioSourceError(f"Microphone unavailable: {exc}") from exc
        self._stream = stream
        self.logger.add("Microphone started")

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.stop()
        stream.close()
        self.logger.add("Microphone stopped")

    def _callback(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        self._deliver(indata)


class FileSource(_BaseSource):
    """Replays an audio file block by block, optionally paced in real time."""

    def __init__(
        self,
        path: Path,
        on_frame: FrameHandler,
        logger: LogBuffer,
        *,
        block_size: int = 512,
        realtime: bool = True,
        tail_silence: float = 0.0,
        on_finished: Callable[[], None] | None = None,
        level_callback: Callable[[float], None] | None = None,
    ) -> None:
        super().__init__(on_frame, logger, level_callback=level_callback)
        self.path = Path(path)
        self.block_size = block_size
        self.realtime = realtime
        self.tail_silence = max(0.0, float(tail_silence))
        self.on_finished = on_finished
        self.sample_rate = 0
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        try:
            audio, self.sample_rate = sf.read(str(self.path), dtype="float32", always_2d=False)
        except Exception as exc:
            self.logger.error(f"Cannot read {self.path.name}: {exc}")
            raise AudioSourceError(f"Cannot read {self.path}: {exc}") from exc
        if self.tail_silence:
            audio = np.concatenate([self._to_mono_array(audio), np.zeros(int(self.sample_rate * self.tail_silence), np.float32)])
        self.logger.add(f"Replaying {self.path.name}")
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, args=(audio,), name="sayitdone-replay", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    def join(self, timeout: float | None = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def _loop(self, audio: np.ndarray) -> None:
        period = self.block_size / float(self.sample_rate) if self.sample_rate else 0.0
        for offset in range(0, len(audio), self.block_size):
            if self._stop.is_set():
                return
            self._deliver(audio[offset : offset + self.block_size])
            if self.realtime:
                time.sleep(period)
        if self.on_finished:
            self.on_finished()


__all__ = ["FileSource", "MicrophoneSource"]
