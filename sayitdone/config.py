"""Capture settings resolved from the environment."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _env(name: str, default: str) -> str:
    return os.getenv(f"SAYITDONE_{name}", default)


class CaptureConfig(BaseModel):
    sample_rate: int = Field(default=int(_env("SAMPLE_RATE", "16000")))
    channels: int = Field(default=int(_env("CHANNELS", "1")))
    block_size: int = Field(default=int(_env("BLOCK_SIZE", "512")))
    vad_base_threshold: float = Field(default=float(_env("VAD_BASE_THRESHOLD", "0.01")))
    required_voice_frames: int = Field(default=int(_env("REQUIRED_VOICE_FRAMES", "10")))
    silence_power_threshold: float = Field(default=float(_env("SILENCE_POWER_THRESHOLD", "0.006")))
    required_silence_frames: int = Field(default=int(_env("REQUIRED_SILENCE_FRAMES", "8")))
    silence_timeout: float = Field(default=float(_env("SILENCE_TIMEOUT", "1.5")))
    debounce_interval: float = Field(default=float(_env("DEBOUNCE_INTERVAL", "0.3")))
    max_recording_seconds: float = Field(default=float(_env("MAX_RECORDING_SECONDS", "10.0")))
    final_result_timeout: float = Field(default=float(_env("FINAL_RESULT_TIMEOUT", "3.0")))
    default_sensitivity: float = Field(default=float(_env("DEFAULT_SENSITIVITY", "0.5")))
    whisper_model: str = Field(default=_env("WHISPER_MODEL", "tiny"))
    whisper_device: str = Field(default=_env("WHISPER_DEVICE", "cpu"))
    whisper_compute_type: str = Field(default=_env("WHISPER_COMPUTE_TYPE", "int8"))
    whisper_language: str | None = Field(default=_env("WHISPER_LANGUAGE", "en") or None)
    partial_interval: float = Field(default=float(_env("PARTIAL_INTERVAL", "1.0")))
    data_dir: str = Field(default=_env("DATA_DIR", "~/.sayitdone"))
    settings_file: str = Field(default=_env("SETTINGS_FILE", "settings.json"))
    log_history: int = Field(default=int(_env("LOG_HISTORY", "200")))
    log_level: str = Field(default=_env("LOG_LEVEL", "INFO"))


@lru_cache()
def get_config() -> CaptureConfig:
    return CaptureConfig()


CONFIG = get_config()


def configure_logging(level: str) -> None:
    """Apply a simple logging configuration for the CLI."""

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
