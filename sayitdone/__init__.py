"""Hands-free voice task capture: VAD, silence-timed transcription, date parsing."""

__version__ = "0.1.0"
