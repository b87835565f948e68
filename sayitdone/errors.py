"""Exception types shared across capture components."""

from __future__ import annotations


class SayItDoneError(Exception):
    pass


class AudioSourceError(SayItDoneError):
    """Audio device or file could not be opened or started."""


class RecognizerError(SayItDoneError):
    """Speech recognizer failed to load or start."""
