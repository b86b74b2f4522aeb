from collections import deque

import pytest

from vinu_alpaca.config.models import DomeConfig, SerialConfig
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.protocol.interface import TransportInterface
from vinu_alpaca.protocol.logger import get_protocol_logger
from vinu_alpaca.utils.exceptions import NotConnectedError, SerialTimeoutError


NO_REPLY = object()


class Late:
    """A status reply that misses its poll and shows up on the next read."""

    def __init__(self, text):
        self.text = text


class FakeTransport(TransportInterface):
    """
    Scripted roof controller.

    Each get# takes the next entry of `status_script` (or `default_status`
    when the script is exhausted). An entry is a reply string, None for
    no reply at all, or Late(text) for a reply that arrives one read late.
    `send_errors` maps a command to an exception raised once on its send.
    """

    def __init__(self, banner="VINU ROR v2.1", default_status="closed,safe,not_moving_c"):
        self.banner = banner
        self.default_status = default_status
        self.status_script = deque()
        self.sent = []
        self.open_calls = []
        self.close_calls = 0
        self.open_error = None
        self.receive_error = None
        self.send_errors = {}
        self._open = False
        self._replies = deque()

    def script(self, *replies):
        self.status_script.extend(replies)

    def commands(self, name):
        return [c for c in self.sent if c == name]

    def open(self, port, baud=9600, timeout_ms=1000):
        self.open_calls.append((port, baud, timeout_ms))
        if self.open_error is not None:
            raise self.open_error
        self._open = True

    def close(self):
        if self._open:
            self.close_calls += 1
        self._open = False
        self._replies.clear()

    def is_open(self):
        return self._open

    def send(self, data):
        if not self._open:
            raise NotConnectedError("Serial port not open")
        command = data.decode("ascii").strip()
        self.sent.append(command)
        if command in self.send_errors:
            raise self.send_errors.pop(command)

        if command == "Init#":
            self._replies.append(NO_REPLY if self.banner is None else self.banner)
        elif command == "get#":
            entry = self.status_script.popleft() if self.status_script else self.default_status
            if entry is None:
                self._replies.append(NO_REPLY)
            elif isinstance(entry, Late):
                self._replies.append(NO_REPLY)
                self._replies.append(entry.text)
            else:
                self._replies.append(entry)

    def receive_until(self, terminator="#", timeout_ms=1000):
        if not self._open:
            raise NotConnectedError("Serial port not open")
        if self.receive_error is not None:
            error, self.receive_error = self.receive_error, None
            raise error
        if not self._replies:
            raise SerialTimeoutError("nothing to read")
        reply = self._replies.popleft()
        if reply is NO_REPLY:
            raise SerialTimeoutError("no reply")
        return reply


@pytest.fixture(autouse=True)
def quiet_protocol_trace():
    trace = get_protocol_logger()
    trace.clear()
    trace.enabled = False
    yield
    trace.clear()
    trace.enabled = False


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def dome_config():
    return DomeConfig(operation_timeout_seconds=1, poll_interval_ms=10, status_timeout_ms=50)


@pytest.fixture
def session(transport, dome_config):
    return DomeSession(transport, SerialConfig(port="COM7"), dome_config)


@pytest.fixture
def connected(session):
    session.connect("client-a")
    return session
