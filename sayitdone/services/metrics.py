"""Prometheus metrics for capture sessions."""

from __future__ import annotations

from prometheus_client import Counter, Summary

SESSION_COUNTER = Counter(
    "sayitdone_sessions_finalized_total",
    "Finalized transcription sessions",
    labelnames=("reason", "outcome"),
)

SESSION_DURATION = Summary(
    "sayitdone_session_seconds",
    "Time from start() to finalize",
)

VAD_TRIGGER_COUNTER = Counter(
    "sayitdone_vad_triggers_total",
    "Voice-detected triggers emitted by the VAD",
)

START_REJECTED_COUNTER = Counter(
    "sayitdone_start_rejected_total",
    "start() requests ignored",
    labelnames=("cause",),
)
