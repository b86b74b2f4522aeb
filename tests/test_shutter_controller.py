import threading
import time

import pytest

from conftest import Late
from vinu_alpaca.dome.controller import (
    ALREADY_AT_TARGET,
    ALREADY_MOVING,
    CANCELLED,
    SCOPE_UNSAFE,
    OperationState,
    OutcomeKind,
)
from vinu_alpaca.dome.state import RoofState
from vinu_alpaca.utils.exceptions import ShutterError, ShutterTimeoutError, TransportError


def test_open_while_scope_unsafe_sends_nothing(session, transport):
    transport.default_status = "closed,unsafe,not_moving_c"
    session.connect("a")

    outcome = session.shutter.open()

    assert outcome.kind == OutcomeKind.NOOP
    assert outcome.reason == SCOPE_UNSAFE
    assert outcome.ok
    assert "open#" not in transport.sent
    assert session.status.roof_state == RoofState.CLOSED


def test_close_when_already_closed_is_noop(connected, transport):
    outcome = connected.shutter.close()

    assert outcome.kind == OutcomeKind.NOOP
    assert outcome.reason == ALREADY_AT_TARGET
    assert "close#" not in transport.sent


def test_open_succeeds_when_roof_reports_open(connected, transport):
    transport.script(
        "opening,safe,moving",
        "opening,safe,moving",
        "opening,safe,moving",
        "open,safe,not_moving_o",
    )

    outcome = connected.shutter.open()

    assert outcome.kind == OutcomeKind.OK
    assert outcome.roof_state == RoofState.OPEN
    assert connected.status.roof_state == RoofState.OPEN
    assert connected.status.is_moving is False
    assert transport.commands("open#") == ["open#"]
    assert connected.shutter.operation_state == OperationState.SUCCEEDED


def test_close_succeeds_once_roof_stops(connected, transport):
    transport.default_status = "opened,safe,not_moving_o"
    connected.shutter.poll_status()
    transport.script("closing,safe,moving", "closing,safe,not_moving")

    outcome = connected.shutter.close()

    assert outcome.kind == OutcomeKind.OK
    assert transport.commands("close#") == ["close#"]


def test_open_times_out_then_aborts(connected, transport):
    transport.default_status = "opening,safe,moving"

    started = time.monotonic()
    with pytest.raises(ShutterTimeoutError):
        connected.shutter.open()
    elapsed = time.monotonic() - started

    assert elapsed >= 1.0
    assert transport.commands("stop#") == ["stop#"]
    # State comes from the poll after stop#, not forced to ERROR
    assert connected.status.roof_state == RoofState.OPENING
    assert connected.shutter.operation_state == OperationState.FAILED


def test_scope_going_unsafe_aborts_quietly(connected, transport):
    transport.script("opening,safe,moving", "opening,unsafe,moving")

    outcome = connected.shutter.open()

    assert outcome.kind == OutcomeKind.ABORTED
    assert outcome.reason == SCOPE_UNSAFE
    assert not outcome.ok
    assert connected.status.is_moving is False
    assert "stop#" not in transport.sent


def test_error_state_fails_operation(connected, transport):
    transport.script("opening,safe,moving", "error,safe,moving")

    with pytest.raises(ShutterError) as excinfo:
        connected.shutter.open()

    assert not isinstance(excinfo.value, ShutterTimeoutError)
    # Error already cleared motion, so the abort only resynchronizes
    assert "stop#" not in transport.sent
    assert connected.status.roof_state == RoofState.CLOSED


def test_roof_stopping_in_unknown_state_completes(connected, transport):
    transport.script("opening,safe,moving", "stopped,safe,not_moving")

    outcome = connected.shutter.open()

    assert outcome.kind == OutcomeKind.OK
    assert outcome.roof_state == RoofState.ERROR
    assert "stop#" not in transport.sent
    assert connected.shutter.operation_state == OperationState.SUCCEEDED


def test_timeout_is_reported_even_if_stop_fails(connected, transport):
    transport.default_status = "opening,safe,moving"
    transport.send_errors["stop#"] = TransportError("write failed")

    with pytest.raises(ShutterTimeoutError):
        connected.shutter.open()

    assert transport.commands("stop#") == ["stop#"]


def test_open_while_moving_is_rejected(connected, transport):
    transport.script("closing,safe,moving")
    connected.shutter.poll_status()

    outcome = connected.shutter.open()

    assert outcome.kind == OutcomeKind.REJECTED
    assert outcome.reason == ALREADY_MOVING
    assert "open#" not in transport.sent


def test_late_reply_is_consumed_before_next_request(connected, transport):
    transport.script(Late("opening,safe,moving"))
    before = len(transport.commands("get#"))

    assert connected.shutter.poll_status() == RoofState.CLOSED
    assert connected.shutter.pending_requests == 1

    assert connected.shutter.poll_status() == RoofState.OPENING
    assert connected.shutter.pending_requests == 0
    assert len(transport.commands("get#")) == before + 1


def test_lost_reply_is_given_up_after_one_extra_read(connected, transport):
    transport.script(None)
    before = len(transport.commands("get#"))

    connected.shutter.poll_status()
    connected.shutter.poll_status()
    assert connected.shutter.pending_requests == 0
    assert len(transport.commands("get#")) == before + 1

    connected.shutter.poll_status()
    assert len(transport.commands("get#")) == before + 2


def test_io_failure_during_poll_forces_error(connected, transport):
    transport.receive_error = TransportError("device unplugged")

    assert connected.shutter.poll_status() == RoofState.ERROR
    assert connected.status.is_moving is False


def test_abort_when_idle_only_resyncs(connected, transport):
    polls = len(transport.commands("get#"))

    connected.shutter.abort()
    connected.shutter.abort()

    assert "stop#" not in transport.sent
    assert len(transport.commands("get#")) == polls + 2
    assert connected.status.roof_state == RoofState.CLOSED


def test_abort_stops_moving_roof(connected, transport):
    transport.script("opening,safe,moving", "stopped,safe,not_moving")
    connected.shutter.poll_status()

    connected.shutter.abort()

    assert transport.sent[-2:] == ["stop#", "get#"]
    assert connected.status.is_moving is False


def test_abort_from_another_caller_cancels_wait(connected, transport):
    transport.default_status = "opening,safe,moving"
    outcomes = []

    worker = threading.Thread(target=lambda: outcomes.append(connected.shutter.open()))
    worker.start()
    time.sleep(0.1)

    # A second request while the first is running is refused
    assert connected.shutter.close().kind == OutcomeKind.REJECTED

    connected.shutter.abort()
    worker.join(timeout=2.0)

    assert not worker.is_alive()
    assert outcomes[0].kind == OutcomeKind.ABORTED
    assert outcomes[0].reason == CANCELLED
    assert "stop#" in transport.sent
