"""Bounded in-memory status log surfaced to the user."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import List

LOGGER = logging.getLogger("sayitdone.status")


class LogBuffer:
    def __init__(self, max_lines: int = 200) -> None:
        self._lines: deque[str] = deque(maxlen=max(1, int(max_lines)))
        self._lock = threading.Lock()

    def add(self, message: str, *, level: int = logging.INFO) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lock:
            self._lines.append(f"[{stamp}] {message}")
        LOGGER.log(level, message)

    def error(self, message: str) -> None:
        self.add(message, level=logging.ERROR)

    def get(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
