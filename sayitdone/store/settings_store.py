"""Persistent user settings for voice capture."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

LOGGER = logging.getLogger("sayitdone.settings")

MIN_SILENCE_TIMEOUT = 0.1


@dataclass(slots=True)
class AppSettings:
    vad_sensitivity: float = 0.5
    vad_enabled: bool = True
    silence_timeout: float = 1.5


def _clamp_unit(value: float) -> float:
    return max(0.0, min(float(value), 1.0))


class SettingsStore:
    def __init__(self, path: Path, *, default_sensitivity: float = 0.5) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.default_sensitivity = _clamp_unit(default_sensitivity)
        self._settings = self._load()

    def _load(self) -> AppSettings:
        settings = AppSettings(vad_sensitivity=self.default_sensitivity)
        if not self.path.exists():
            return settings
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            return settings
        if not isinstance(raw, dict):
            return settings
        settings.vad_sensitivity = _clamp_unit(raw.get("vad_sensitivity", settings.vad_sensitivity))
        settings.vad_enabled = bool(raw.get("vad_enabled", settings.vad_enabled))
        settings.silence_timeout = max(
            MIN_SILENCE_TIMEOUT, float(raw.get("silence_timeout", settings.silence_timeout))
        )
        return settings

    def get(self) -> AppSettings:
        return self._settings

    @property
    def sensitivity(self) -> float:
        return self._settings.vad_sensitivity

    def update(self, **kwargs) -> AppSettings:
        for key, value in kwargs.items():
            if not hasattr(self._settings, key):
                continue
            if key == "vad_sensitivity":
                value = _clamp_unit(value)
            elif key == "silence_timeout":
                value = max(MIN_SILENCE_TIMEOUT, float(value))
            elif key == "vad_enabled":
                value = bool(value)
            setattr(self._settings, key, value)
        self._persist()
        return self._settings

    def _persist(self) -> None:
        self.path.write_text(json.dumps(asdict(self._settings)), encoding="utf-8")
