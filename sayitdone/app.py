"""Hands-free entrypoint: microphone -> VAD -> transcription -> task."""

from __future__ import annotations

import argparse
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from .audio.recorder import FileSource, MicrophoneSource
from .audio.types import FrameMetrics
from .audio.voice_activity import VoiceActivityDetector
from .config import CONFIG, CaptureConfig, configure_logging
from .errors import SayItDoneError
from .services.date_extraction import extract
from .services.dispatcher import SerialDispatcher
from .services.logger import LogBuffer
from .services.metrics import VAD_TRIGGER_COUNTER
from .services.recognizer import Recognizer, WhisperRecognizer
from .services.transcription import TranscriptionSession
from .store.settings_store import SettingsStore
from .store.task_inbox import TaskInbox

TaskCallback = Callable[[str, Optional[datetime]], None]


class VoiceTaskService:
    """Routes frames to the VAD while idle and to the session while listening."""

    def __init__(
        self,
        config: CaptureConfig = CONFIG,
        *,
        settings_store: SettingsStore | None = None,
        recognizer: Recognizer | None = None,
        dispatcher=None,
        inbox: TaskInbox | None = None,
        logger: LogBuffer | None = None,
        on_task: TaskCallback | None = None,
    ) -> None:
        self.config = config
        base_dir = Path(config.data_dir).expanduser()
        self.settings_store = settings_store or SettingsStore(
            base_dir / config.settings_file, default_sensitivity=config.default_sensitivity
        )
        self.logger = logger or LogBuffer(config.log_history)
        self.dispatcher = dispatcher or SerialDispatcher()
        self.inbox = inbox or TaskInbox()
        self.on_task = on_task
        self.input_level = 0.0
        self.live_text = ""
        settings = self.settings_store.get()
        self.vad_enabled = settings.vad_enabled
        self.vad = VoiceActivityDetector(
            settings.vad_sensitivity,
            base_threshold=config.vad_base_threshold,
            required_voice_frames=config.required_voice_frames,
            on_voice=self._handle_voice_detected,
        )
        self.session = TranscriptionSession(
            recognizer or WhisperRecognizer.from_config(config),
            self.dispatcher,
            self._handle_session_complete,
            silence_timeout=settings.silence_timeout,
            silence_power_threshold=config.silence_power_threshold,
            required_silence_frames=config.required_silence_frames,
            debounce_interval=config.debounce_interval,
            max_recording_seconds=config.max_recording_seconds,
            final_result_timeout=config.final_result_timeout,
            logger=self.logger,
            on_text=self._update_live_text,
            on_idle=self._handle_session_idle,
            on_start_rejected=self._handle_start_rejected,
        )
        self.source = None

    # -- lifecycle ------------------------------------------------------------------

    def start_microphone(self, device: int | str | None = None) -> None:
        self.dispatcher.start()
        self.preload_recognizer()
        self.source = MicrophoneSource(
            self.handle_frame,
            self.logger,
            sample_rate=self.config.sample_rate,
            channels=self.config.channels,
            block_size=self.config.block_size,
            device=device,
            level_callback=self._update_input_level,
        )
        self.source.start()

    def start_file(self, path: Path, *, realtime: bool = True, on_finished: Callable[[], None] | None = None) -> FileSource:
        self.dispatcher.start()
        self.preload_recognizer()
        self.source = FileSource(
            path,
            self.handle_frame,
            self.logger,
            block_size=self.config.block_size,
            realtime=realtime,
            tail_silence=self.config.silence_timeout + 0.5,
            on_finished=on_finished,
            level_callback=self._update_input_level,
        )
        self.source.start()
        return self.source

    def preload_recognizer(self) -> None:
        """Load the speech model before audio flows so the first session does not stall."""
        try:
            self.session.recognizer.preload()
        except SayItDoneError as exc:
            self.logger.error(f"Recognizer unavailable: {exc}")
            raise
        self.logger.add("Recognizer ready")

    def shutdown(self) -> None:
        if self.source is not None:
            self.source.stop()
        self.session.stop()
        self.dispatcher.stop()

    def toggle_recording(self) -> None:
        if self.session.is_active:
            self.session.stop()
        else:
            self.session.start()

    # -- settings -------------------------------------------------------------------

    def refresh_sensitivity(self) -> float:
        value = self.settings_store.get().vad_sensitivity
        self.dispatcher.post(self.vad.update_sensitivity, value)
        return value

    def set_sensitivity(self, value: float) -> None:
        self.settings_store.update(vad_sensitivity=value)
        self.refresh_sensitivity()
        self.logger.add(f"VAD sensitivity set to {self.settings_store.sensitivity:.2f}")

    def set_vad_enabled(self, enabled: bool) -> None:
        self.settings_store.update(vad_enabled=enabled)
        self.vad_enabled = bool(enabled)
        self.dispatcher.post(self.vad.reset)
        self.logger.add("Hands-free capture " + ("enabled" if enabled else "disabled"))

    # -- frame routing --------------------------------------------------------------

    def handle_frame(self, samples: np.ndarray, metrics: FrameMetrics) -> None:
        """Audio-thread entry point; never touches state directly."""
        self.dispatcher.post(self._route_frame, samples, metrics)

    def _route_frame(self, samples: np.ndarray, metrics: FrameMetrics) -> None:
        if self.session.is_active:
            self.session.process_frame(samples, metrics)
        elif self.vad_enabled:
            self.vad.observe(metrics, recording_active=False)

    def _handle_voice_detected(self) -> None:
        VAD_TRIGGER_COUNTER.inc()
        self.logger.add("Voice detected; starting capture")
        self.vad.update_sensitivity(self.settings_store.get().vad_sensitivity)
        self.session.start()

    def _handle_session_idle(self) -> None:
        self.vad.reset()

    def _handle_start_rejected(self, cause: str) -> None:
        # A rejected trigger must not use up the current voice run.
        self.vad.reset()

    def _handle_session_complete(self, title: str, due_date: Optional[datetime]) -> None:
        task = self.inbox.add(title, due_date)
        if task is not None:
            due = due_date.strftime("%Y-%m-%d") if due_date else "no due date"
            self.logger.add(f"Task added: {title} ({due})")
        if self.on_task:
            self.on_task(title, due_date)

    def _update_live_text(self, text: str) -> None:
        self.live_text = text

    def _update_input_level(self, level: float) -> None:
        self.input_level = level


def _print_task(title: str, due_date: Optional[datetime]) -> None:
    if not title:
        return
    due = due_date.strftime("%a %Y-%m-%d") if due_date else "-"
    print(f"{title}\t{due}", flush=True)


def _cmd_parse(args: argparse.Namespace) -> int:
    title, due_date = extract(" ".join(args.text))
    _print_task(title, due_date)
    return 0


def _cmd_listen(args: argparse.Namespace) -> int:
    service = VoiceTaskService(on_task=_print_task)
    if args.sensitivity is not None:
        service.set_sensitivity(args.sensitivity)
    try:
        service.start_microphone(args.device)
    except SayItDoneError as exc:
        print(f"error: {exc}", file=sys.stderr)
        service.shutdown()
        return 1
    print("Listening; speak a task or press Ctrl-C to quit.", flush=True)
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        service.shutdown()
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    service = VoiceTaskService(on_task=_print_task)
    finished = threading.Event()
    try:
        service.start_file(args.file, realtime=not args.fast, on_finished=finished.set)
    except SayItDoneError as exc:
        print(f"error: {exc}", file=sys.stderr)
        service.shutdown()
        return 1
    finished.wait()
    service.dispatcher.flush(timeout=None)
    deadline = time.monotonic() + service.config.max_recording_seconds + service.config.final_result_timeout + 2.0
    while service.session.is_active and time.monotonic() < deadline:
        time.sleep(0.1)
    service.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sayitdone", description="Speak tasks, get titles and due dates.")
    parser.add_argument("--log-level", default=CONFIG.log_level, help="Python logging level (default: %(default)s).")
    commands = parser.add_subparsers(dest="command", required=True)

    listen = commands.add_parser("listen", help="Capture from the microphone with hands-free VAD.")
    listen.add_argument("--device", default=None, help="sounddevice input device name or index.")
    listen.add_argument("--sensitivity", type=float, default=None, help="VAD sensitivity 0.0-1.0 (persisted).")
    listen.set_defaults(handler=_cmd_listen)

    replay = commands.add_parser("replay", help="Feed an audio file through the capture pipeline.")
    replay.add_argument("file", type=Path)
    replay.add_argument("--fast", action="store_true", help="Do not pace frames in real time.")
    replay.set_defaults(handler=_cmd_replay)

    parse = commands.add_parser("parse", help="Extract title and due date from text.")
    parse.add_argument("text", nargs="+")
    parse.set_defaults(handler=_cmd_parse)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
