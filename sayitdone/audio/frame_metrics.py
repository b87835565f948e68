"""Per-buffer amplitude metrics, safe to call from the audio callback."""

from __future__ import annotations

import numpy as np

from .types import FrameMetrics

_SILENT = FrameMetrics(0.0, 0.0)


def measure(samples) -> FrameMetrics:
    data = np.asarray(samples, dtype=np.float32)
    if data.ndim > 1:
        data = data[:, 0]
    if data.size == 0:
        return _SILENT
    magnitude = np.abs(data)
    return FrameMetrics(
        average_power=float(magnitude.mean()),
        peak_power=float(magnitude.max()),
    )


__all__ = ["measure"]
