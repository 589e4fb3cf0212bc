"""Tests for the OAuth redirect listener and code handoff."""

import logging
import os
import signal
import threading
import time

import pytest
import requests

from x_yapper.callback import (
    CodeHandoff,
    CallbackListener,
    ListenerState,
    cancel_on_signals,
)


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def listener():
    lst = CallbackListener("abc123", port=0, handoff_timeout=2.0, shutdown_grace=2.0)
    lst.start()
    yield lst
    lst.stop()


def _callback_url(listener: CallbackListener, query: str, path: str = "/callback") -> str:
    return f"http://localhost:{listener.port}{path}?{query}"


# --- CodeHandoff ---


class TestCodeHandoff:
    def test_take_receives_offered_code(self) -> None:
        handoff = CodeHandoff()
        results: list[bool] = []
        producer = threading.Thread(target=lambda: results.append(handoff.offer("xyz", 2.0)))
        producer.start()
        assert handoff.take(timeout=2.0) == "xyz"
        producer.join()
        assert results == [True]

    def test_unclaimed_code_is_withdrawn(self) -> None:
        handoff = CodeHandoff()
        assert handoff.offer("xyz", 0.05) is False
        assert handoff.take(timeout=0) is None

    def test_take_times_out_without_offer(self) -> None:
        assert CodeHandoff().take(timeout=0.05) is None


# --- CallbackListener ---


class TestCallbackListener:
    def test_matching_state_delivers_code(self, listener: CallbackListener) -> None:
        received: list[str | None] = []
        waiter = threading.Thread(
            target=lambda: received.append(listener.wait_for_code(threading.Event(), timeout=5)),
        )
        waiter.start()

        resp = requests.get(_callback_url(listener, "state=abc123&code=xyz"), timeout=5)
        waiter.join()

        assert resp.status_code == 200
        assert "Authorization successful" in resp.text
        assert received == ["xyz"]
        assert _wait_until(lambda: listener.state is ListenerState.STOPPED)

    def test_state_mismatch_rejected(self, listener: CallbackListener) -> None:
        resp = requests.get(_callback_url(listener, "state=WRONG&code=xyz"), timeout=5)

        assert resp.status_code == 400
        assert listener.handoff.take(timeout=0.1) is None
        assert listener.state is ListenerState.LISTENING

    def test_missing_code_rejected(self, listener: CallbackListener) -> None:
        resp = requests.get(_callback_url(listener, "state=abc123"), timeout=5)
        assert resp.status_code == 400
        assert listener.state is ListenerState.LISTENING

    def test_provider_error_rejected(self, listener: CallbackListener) -> None:
        resp = requests.get(
            _callback_url(listener, "state=abc123&error=access_denied"), timeout=5,
        )
        assert resp.status_code == 400
        assert "access_denied" in resp.text

    def test_unknown_path_is_404(self, listener: CallbackListener) -> None:
        resp = requests.get(_callback_url(listener, "state=abc123&code=xyz", path="/other"), timeout=5)
        assert resp.status_code == 404

    def test_code_dropped_when_nobody_waits(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.WARNING, logger="x_yapper.callback")
        lst = CallbackListener("abc123", port=0, handoff_timeout=0.1, shutdown_grace=2.0)
        lst.start()
        try:
            resp = requests.get(_callback_url(lst, "state=abc123&code=xyz"), timeout=5)
            assert resp.status_code == 200
            assert _wait_until(lambda: lst.state is ListenerState.STOPPED)
            assert lst.handoff.take(timeout=0) is None
            assert any(
                r.name == "x_yapper.callback"
                and r.levelno == logging.WARNING
                and "Timed out handing off authorization code" in r.getMessage()
                for r in caplog.records
            )
        finally:
            lst.stop()

    def test_wait_for_code_returns_none_on_cancel(self, listener: CallbackListener) -> None:
        cancel = threading.Event()
        cancel.set()
        assert listener.wait_for_code(cancel) is None

    def test_wait_for_code_honours_timeout(self, listener: CallbackListener) -> None:
        assert listener.wait_for_code(threading.Event(), timeout=0.1) is None

    def test_stop_is_idempotent(self, listener: CallbackListener) -> None:
        listener.stop()
        listener.stop()
        assert listener.state is ListenerState.STOPPED

    def test_stop_releases_port(self, listener: CallbackListener) -> None:
        port = listener.port
        listener.stop()
        with pytest.raises(requests.ConnectionError):
            requests.get(f"http://localhost:{port}/callback?state=abc123&code=xyz", timeout=2)

    def test_stop_without_server(self) -> None:
        lst = CallbackListener("abc123", port=0)
        lst._state = ListenerState.LISTENING
        lst.stop()
        assert lst.state is ListenerState.STOPPED

    def test_stop_before_start(self) -> None:
        lst = CallbackListener("abc123", port=0)
        lst.stop()
        assert lst.state is ListenerState.STOPPED

    def test_start_twice_rejected(self, listener: CallbackListener) -> None:
        with pytest.raises(RuntimeError):
            listener.start()

    def test_state_matches(self) -> None:
        lst = CallbackListener("abc123", port=0)
        assert lst.state_matches("abc123")
        assert not lst.state_matches("abc124")
        assert not lst.state_matches("")


# --- cancel_on_signals ---


class TestCancelOnSignals:
    def test_sigterm_sets_event(self) -> None:
        with cancel_on_signals() as cancel:
            os.kill(os.getpid(), signal.SIGTERM)
            assert _wait_until(cancel.is_set, timeout=2)

    def test_previous_handlers_restored(self) -> None:
        before = signal.getsignal(signal.SIGTERM)
        with cancel_on_signals():
            assert signal.getsignal(signal.SIGTERM) is not before
        assert signal.getsignal(signal.SIGTERM) is before
