import numpy as np
import pytest

from sayitdone.app import VoiceTaskService, main
from sayitdone.audio.frame_metrics import measure
from sayitdone.config import CaptureConfig
from sayitdone.errors import AudioSourceError, RecognizerError
from sayitdone.services.transcription import SessionState
from sayitdone.store.settings_store import SettingsStore

LOUD = np.full(512, 0.2, dtype=np.float32)
QUIET = np.zeros(512, dtype=np.float32)


def make_service(tmp_path, dispatcher, recognizer, **kwargs):
    config = CaptureConfig(data_dir=str(tmp_path), debounce_interval=0.3, max_recording_seconds=10.0)
    store = SettingsStore(tmp_path / "settings.json")
    tasks = []
    service = VoiceTaskService(
        config,
        settings_store=store,
        recognizer=recognizer,
        dispatcher=dispatcher,
        on_task=lambda title, due: tasks.append((title, due)),
        **kwargs,
    )
    return service, tasks


def push(service, dispatcher, frame, count):
    metrics = measure(frame)
    for _ in range(count):
        service.handle_frame(frame, metrics)
    dispatcher.run_pending()


def test_vad_starts_session_after_required_loud_frames(tmp_path, dispatcher, recognizer):
    service, _ = make_service(tmp_path, dispatcher, recognizer)
    push(service, dispatcher, LOUD, 9)
    assert service.session.state is SessionState.IDLE
    push(service, dispatcher, LOUD, 1)
    assert service.session.state is SessionState.LISTENING
    assert recognizer.start_count == 1


def test_hands_free_flow_adds_task(tmp_path, dispatcher, recognizer):
    service, tasks = make_service(tmp_path, dispatcher, recognizer)
    push(service, dispatcher, LOUD, 10)
    recognizer.partial("pick up groceries due tomorrow")
    push(service, dispatcher, LOUD, 20)
    assert service.live_text == "pick up groceries due tomorrow"
    push(service, dispatcher, QUIET, 8)
    dispatcher.advance(1.5)

    assert tasks and tasks[0][0] == "Pick up groceries"
    assert tasks[0][1] is not None
    assert [task.title for task in service.inbox.list()] == ["Pick up groceries"]
    assert service.session.state is SessionState.IDLE
    assert service.live_text == ""


def test_vad_is_bypassed_while_listening(tmp_path, dispatcher, recognizer):
    service, _ = make_service(tmp_path, dispatcher, recognizer)
    push(service, dispatcher, LOUD, 10)
    push(service, dispatcher, LOUD, 30)
    assert service.vad.consecutive_voice_frames == 10
    assert recognizer.start_count == 1
    assert recognizer.appended == 30


def test_vad_counters_reset_when_session_ends(tmp_path, dispatcher, recognizer):
    service, tasks = make_service(tmp_path, dispatcher, recognizer)
    push(service, dispatcher, LOUD, 10)
    service.session.stop()
    dispatcher.run_pending()
    assert tasks == [("", None)]
    assert service.vad.consecutive_voice_frames == 0

    dispatcher.advance(0.5)
    push(service, dispatcher, LOUD, 10)
    assert recognizer.start_count == 2


def test_disabled_vad_never_starts(tmp_path, dispatcher, recognizer):
    service, _ = make_service(tmp_path, dispatcher, recognizer)
    service.set_vad_enabled(False)
    push(service, dispatcher, LOUD, 30)
    assert recognizer.start_count == 0
    assert service.settings_store.get().vad_enabled is False


def test_sensitivity_is_persisted_and_applied(tmp_path, dispatcher, recognizer):
    service, _ = make_service(tmp_path, dispatcher, recognizer)
    service.set_sensitivity(1.5)
    dispatcher.run_pending()
    assert service.vad.sensitivity == 1.0
    assert SettingsStore(tmp_path / "settings.json").sensitivity == 1.0


def test_toggle_recording(tmp_path, dispatcher, recognizer):
    service, tasks = make_service(tmp_path, dispatcher, recognizer)
    service.toggle_recording()
    dispatcher.run_pending()
    assert service.session.is_active
    recognizer.partial("call mom on monday")
    dispatcher.run_pending()
    service.toggle_recording()
    dispatcher.run_pending()
    assert tasks[0][0] == "Call mom"


def test_cli_parse(capsys):
    assert main(["parse", "submit", "report", "by", "6/15/2025"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Submit report\t")
    assert "2025-06-15" in out


def test_speech_starting_inside_debounce_window_still_triggers(tmp_path, dispatcher, recognizer):
    service, tasks = make_service(tmp_path, dispatcher, recognizer)
    push(service, dispatcher, LOUD, 10)
    service.session.stop()
    dispatcher.run_pending()
    assert tasks == [("", None)]

    push(service, dispatcher, LOUD, 10)
    assert recognizer.start_count == 1
    assert service.vad.consecutive_voice_frames == 0

    dispatcher.advance(0.5)
    push(service, dispatcher, LOUD, 10)
    assert recognizer.start_count == 2
    assert service.session.state is SessionState.LISTENING


def test_recognizer_is_preloaded_before_audio_starts(tmp_path, dispatcher, recognizer):
    service, _ = make_service(tmp_path, dispatcher, recognizer)
    with pytest.raises(AudioSourceError):
        service.start_file(tmp_path / "missing.wav")
    assert recognizer.preload_count == 1
    assert dispatcher.started


def test_unavailable_recognizer_stops_audio_start(tmp_path, dispatcher, failing_recognizer):
    service, _ = make_service(tmp_path, dispatcher, failing_recognizer)
    with pytest.raises(RecognizerError, match="model missing"):
        service.start_file(tmp_path / "missing.wav")
    assert service.source is None
    assert any("model missing" in line for line in service.logger.get())
