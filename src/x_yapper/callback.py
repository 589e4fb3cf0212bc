"""Local HTTP listener that receives the OAuth 2.0 redirect.

The listener serves ``GET /callback`` on a daemon thread.  A request whose
``state`` matches the locally generated one gets a success page, and its
``code`` is handed to the waiting caller through :class:`CodeHandoff`, a
single-slot rendezvous with a bounded wait.  After the handoff the listener
shuts itself down and releases the port.
"""

from __future__ import annotations

import contextlib
import enum
import hmac
import http.server
import logging
import signal
import threading
import time
import urllib.parse
from collections.abc import Iterator

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
DEFAULT_PORT = 8080
HANDOFF_TIMEOUT = 5.0
SHUTDOWN_GRACE = 5.0

_SUCCESS_MESSAGE = "Authorization successful! You can close this window."


class ListenerState(enum.Enum):
    NOT_STARTED = "not_started"
    LISTENING = "listening"
    CODE_RECEIVED = "code_received"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class CodeHandoff:
    """Single-producer/single-consumer rendezvous for one authorization code.

    ``offer`` blocks until a consumer claims the code or the timeout passes;
    an unclaimed code is withdrawn so a late consumer never sees it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slot: str | None = None
        self._claimed = False

    def offer(self, code: str, timeout: float) -> bool:
        with self._cond:
            if self._slot is not None:
                return False
            self._slot = code
            self._claimed = False
            self._cond.notify_all()
            claimed = self._cond.wait_for(lambda: self._claimed, timeout)
            if not claimed:
                self._slot = None
            self._claimed = False
            return claimed

    def take(self, timeout: float | None = None) -> str | None:
        with self._cond:
            if not self._cond.wait_for(lambda: self._slot is not None, timeout):
                return None
            code = self._slot
            self._slot = None
            self._claimed = True
            self._cond.notify_all()
            return code


class _CallbackServer(http.server.ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True
    listener: CallbackListener


class _CallbackHandler(http.server.BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:  # noqa: N802
        parsed = urllib.parse.urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self._respond(404, "Not found.")
            return

        listener = self.server.listener
        params = urllib.parse.parse_qs(parsed.query)
        received_state = params.get("state", [""])[0]

        if not listener.state_matches(received_state):
            logger.warning("Rejected callback with invalid state parameter")
            self._respond(400, "Invalid state parameter.")
            return

        if "error" in params:
            error = params["error"][0]
            description = params.get("error_description", [""])[0]
            logger.error("Authorization denied by provider: %s %s", error, description)
            self._respond(400, f"Authorization failed: {error}")
            return

        code = params.get("code", [""])[0]
        if not code:
            logger.warning("Callback carried a valid state but no code")
            self._respond(400, "Missing code parameter.")
            return

        try:
            self._respond(200, _SUCCESS_MESSAGE)
        except OSError:
            logger.exception("Error writing callback response")
        listener.deliver(code)

    def _respond(self, status: int, message: str) -> None:
        body = message.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("callback: " + format, *args)


class CallbackListener:
    """Short-lived redirect receiver bound to a fixed local port.

    Usage::

        with CallbackListener(expected_state=pkce.state) as listener:
            listener.start()
            code = listener.wait_for_code(cancel)
    """

    def __init__(
        self,
        expected_state: str,
        *,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        handoff_timeout: float = HANDOFF_TIMEOUT,
        shutdown_grace: float = SHUTDOWN_GRACE,
    ) -> None:
        self._expected_state = expected_state.encode("utf-8")
        self._host = host
        self._port = port
        self._handoff_timeout = handoff_timeout
        self._shutdown_grace = shutdown_grace
        self.handoff = CodeHandoff()
        self._server: _CallbackServer | None = None
        self._thread: threading.Thread | None = None
        self._state = ListenerState.NOT_STARTED
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def port(self) -> int:
        """Bound port (the real one when constructed with ``port=0``)."""
        if self._server is None:
            return self._port
        return self._server.server_address[1]

    def start(self) -> None:
        with self._lock:
            if self._state is not ListenerState.NOT_STARTED:
                raise RuntimeError(f"listener already {self._state.value}")
            self._server = _CallbackServer((self._host, self._port), _CallbackHandler)
            self._server.listener = self
            self._thread = threading.Thread(
                target=self._server.serve_forever,
                name="oauth-callback",
                daemon=True,
            )
            self._thread.start()
            self._state = ListenerState.LISTENING
        logger.info("Callback listener on http://%s:%d%s", self._host, self.port, CALLBACK_PATH)

    def state_matches(self, received: str) -> bool:
        return hmac.compare_digest(received.encode("utf-8"), self._expected_state)

    def deliver(self, code: str) -> None:
        """Hand *code* to the waiting caller, then shut down asynchronously."""
        with self._lock:
            if self._state is ListenerState.LISTENING:
                self._state = ListenerState.CODE_RECEIVED
        if not self.handoff.offer(code, self._handoff_timeout):
            logger.warning(
                "Timed out handing off authorization code after %.1fs; dropping it",
                self._handoff_timeout,
            )
        threading.Thread(target=self.stop, name="oauth-callback-stop", daemon=True).start()

    def wait_for_code(
        self,
        cancel: threading.Event,
        timeout: float | None = None,
        *,
        poll_interval: float = 0.1,
    ) -> str | None:
        """Block until a code arrives, *cancel* is set or *timeout* passes."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not cancel.is_set():
            wait = poll_interval
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())
                if wait <= 0:
                    return None
            code = self.handoff.take(timeout=wait)
            if code is not None:
                return code
        return None

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        with self._lock:
            if self._state is ListenerState.NOT_STARTED:
                self._state = ListenerState.STOPPED
                self._stopped.set()
                return
            if self._state in (ListenerState.SHUTTING_DOWN, ListenerState.STOPPED):
                first = False
            else:
                self._state = ListenerState.SHUTTING_DOWN
                first = True
        if not first:
            self._stopped.wait(self._shutdown_grace)
            return

        server = self._server
        if server is None:
            self._state = ListenerState.STOPPED
            self._stopped.set()
            return
        stopper = threading.Thread(target=server.shutdown, daemon=True)
        stopper.start()
        stopper.join(self._shutdown_grace)
        if stopper.is_alive():
            logger.warning(
                "Callback listener did not stop within %.1fs; closing socket",
                self._shutdown_grace,
            )
        server.server_close()
        self._state = ListenerState.STOPPED
        self._stopped.set()
        logger.info("Callback listener stopped")

    def __enter__(self) -> CallbackListener:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


@contextlib.contextmanager
def cancel_on_signals(
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[threading.Event]:
    """Yield an event that is set when one of *signals* arrives.

    Must be entered from the main thread. Previous handlers are restored.
    """
    cancel = threading.Event()

    def _handler(signum: int, _frame: object) -> None:
        logger.info("Received %s, cancelling", signal.Signals(signum).name)
        cancel.set()

    previous = {sig: signal.signal(sig, _handler) for sig in signals}
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
