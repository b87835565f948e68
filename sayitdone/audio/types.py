"""Dataclasses shared across audio helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np


@dataclass(frozen=True, slots=True)
class FrameMetrics:
    """Average and peak absolute amplitude of one buffer."""

    average_power: float = 0.0
    peak_power: float = 0.0


FrameHandler = Callable[[np.ndarray, FrameMetrics], None]
