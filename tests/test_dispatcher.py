import threading

import pytest

from sayitdone.services.dispatcher import SerialDispatcher


@pytest.fixture
def serial():
    dispatcher = SerialDispatcher()
    dispatcher.start()
    yield dispatcher
    dispatcher.stop()


def test_posts_run_in_order_on_one_thread(serial):
    seen = []
    threads = set()

    def record(value):
        seen.append(value)
        threads.add(threading.current_thread().name)

    for value in range(50):
        serial.post(record, value)
    assert serial.flush(timeout=2)
    assert seen == list(range(50))
    assert threads == {serial.name}


def test_call_later_runs_on_dispatch_thread(serial):
    done = threading.Event()
    result = {}

    def fire():
        result["in_thread"] = serial.in_dispatch_thread()
        done.set()

    serial.call_later(0.05, fire)
    assert done.wait(2)
    assert result["in_thread"] is True


def test_cancelled_call_never_runs(serial):
    ran = []
    call = serial.call_later(0.05, ran.append, 1)
    call.cancel()
    assert call.cancelled
    threading.Event().wait(0.15)
    serial.flush(timeout=2)
    assert ran == []


def test_cancel_after_timer_fired_but_before_run(serial):
    ran = []
    gate = threading.Event()
    serial.post(gate.wait, 2)
    call = serial.call_later(0.01, ran.append, 1)
    threading.Event().wait(0.1)
    call.cancel()
    gate.set()
    serial.flush(timeout=2)
    assert ran == []


def test_failing_call_does_not_stop_worker(serial, caplog):
    def boom():
        raise ValueError("boom")

    ran = []
    serial.post(boom)
    serial.post(ran.append, "after")
    assert serial.flush(timeout=2)
    assert ran == ["after"]
    assert "failed" in caplog.text
