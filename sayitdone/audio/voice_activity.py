"""Threshold-based voice activity detection on per-frame metrics."""

from __future__ import annotations

from typing import Callable

from .types import FrameMetrics

PEAK_FACTOR = 3.0
SENSITIVITY_SPAN = 0.8


def clamp_sensitivity(value: float) -> float:
    return max(0.0, min(float(value), 1.0))


class VoiceActivityDetector:
    """Emit a single voice-detected trigger after a run of loud frames.

    Higher sensitivity lowers the effective threshold (down to 20% of the
    base threshold at sensitivity 1.0).
    """

    def __init__(
        self,
        sensitivity: float = 0.5,
        *,
        base_threshold: float = 0.01,
        required_voice_frames: int = 10,
        on_voice: Callable[[], None] | None = None,
    ) -> None:
        self.base_threshold = float(base_threshold)
        self.required_voice_frames = max(1, int(required_voice_frames))
        self.on_voice = on_voice
        self._sensitivity = clamp_sensitivity(sensitivity)
        self.consecutive_voice_frames = 0
        self.consecutive_silence_frames = 0

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    def update_sensitivity(self, value: float) -> None:
        self._sensitivity = clamp_sensitivity(value)

    @property
    def threshold(self) -> float:
        return self.base_threshold * (1.0 - self._sensitivity * SENSITIVITY_SPAN)

    def is_voiced(self, metrics: FrameMetrics) -> bool:
        threshold = self.threshold
        return metrics.average_power > threshold or metrics.peak_power > threshold * PEAK_FACTOR

    def observe(self, metrics: FrameMetrics, *, recording_active: bool = False) -> bool:
        """Classify one frame; return True when this frame triggers voice-detected."""
        if not self.is_voiced(metrics):
            self.consecutive_silence_frames += 1
            self.consecutive_voice_frames = 0
            return False
        self.consecutive_voice_frames += 1
        self.consecutive_silence_frames = 0
        # Equality, not >=: one trigger per silence->voice transition.
        if self.consecutive_voice_frames != self.required_voice_frames or recording_active:
            return False
        if self.on_voice:
            self.on_voice()
        return True

    def reset(self) -> None:
        self.consecutive_voice_frames = 0
        self.consecutive_silence_frames = 0


class SilenceFrameCounter:
    """In-session silence tracking, tuned independently of the VAD."""

    def __init__(self, power_threshold: float = 0.006, required_frames: int = 8) -> None:
        self.power_threshold = float(power_threshold)
        self.required_frames = max(1, int(required_frames))
        self.consecutive = 0

    def is_silent(self, metrics: FrameMetrics) -> bool:
        return (
            metrics.average_power < self.power_threshold
            and metrics.peak_power < self.power_threshold * PEAK_FACTOR
        )

    def observe(self, metrics: FrameMetrics) -> bool:
        """Return True once silence has held for the required frame count."""
        if self.is_silent(metrics):
            self.consecutive += 1
            return self.consecutive >= self.required_frames
        self.consecutive = 0
        return False

    def reset(self) -> None:
        self.consecutive = 0


__all__ = ["SilenceFrameCounter", "VoiceActivityDetector", "clamp_sensitivity"]
