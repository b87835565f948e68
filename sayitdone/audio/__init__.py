"""Audio helpers: per-frame metrics, voice activity, sample sources."""

from .frame_metrics import measure
from .types import FrameMetrics
from .voice_activity import SilenceFrameCounter, VoiceActivityDetector

__all__ = ["FrameMetrics", "SilenceFrameCounter", "VoiceActivityDetector", "measure"]
