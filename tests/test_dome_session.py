import pytest

from conftest import FakeTransport
from vinu_alpaca.config.models import DomeConfig, SerialConfig
from vinu_alpaca.config.user_settings import UserSettingsManager
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.dome.state import RoofState
from vinu_alpaca.utils.exceptions import (
    HandshakeError,
    InvalidOperationError,
    NotConnectedError,
    PortInUseError,
)


def test_first_connect_opens_link_with_handshake(session, transport):
    session.connect("a")

    assert session.connected
    assert transport.open_calls == [("COM7", 9600, 1000)]
    assert transport.sent[:2] == ["Init#", "get#"]
    assert session.status.roof_state == RoofState.CLOSED


def test_link_opens_once_and_closes_after_last_client(session, transport):
    session.connect("a")
    session.connect("b")
    assert len(transport.open_calls) == 1
    assert session.session_count == 2

    session.disconnect("a")
    assert transport.is_open()
    assert transport.close_calls == 0

    session.disconnect("b")
    assert not transport.is_open()
    assert transport.close_calls == 1
    assert not session.connected


def test_reconnecting_same_client_is_noop(session, transport):
    session.connect("a")
    session.connect("a")
    assert session.session_count == 1
    assert transport.commands("Init#") == ["Init#"]


def test_disconnect_unknown_client_is_noop(session, transport):
    session.connect("a")
    session.disconnect("nobody")
    assert session.session_count == 1
    assert transport.close_calls == 0


def test_handshake_mismatch_rolls_back(session, transport):
    transport.banner = "ARDUINO ROOF v1"

    with pytest.raises(HandshakeError):
        session.connect("a")

    assert not session.connected
    assert not transport.is_open()
    assert transport.close_calls == 1


def test_silent_device_fails_handshake(session, transport):
    transport.banner = None

    with pytest.raises(HandshakeError):
        session.connect("a")
    assert not transport.is_open()


def test_port_failure_is_surfaced_and_nothing_registered(session, transport):
    transport.open_error = PortInUseError("COM7 is already in use by another application")

    with pytest.raises(PortInUseError):
        session.connect("a")
    assert not session.connected


def test_last_disconnect_stops_moving_roof_and_resets_state(session, transport):
    session.connect("a")
    transport.script("opening,safe,moving")
    session.shutter.poll_status()
    assert session.status.is_moving

    session.disconnect("a")

    assert "stop#" in transport.sent
    assert not transport.is_open()
    assert session.status.roof_state == RoofState.ERROR
    assert session.status.is_moving is False


def test_last_disconnect_of_idle_roof_sends_no_stop(connected, transport):
    connected.disconnect("client-a")
    assert "stop#" not in transport.sent


def test_operations_need_a_session(session):
    with pytest.raises(NotConnectedError):
        session.shutter.poll_status()
    with pytest.raises(NotConnectedError):
        session.shutter.open()
    with pytest.raises(NotConnectedError):
        session.shutter.abort()


@pytest.mark.parametrize("seconds", [0, 301, -5])
def test_set_timeout_rejects_out_of_range(session, seconds):
    assert session.set_timeout(seconds) is False
    assert session.config.operation_timeout_seconds == 1


def test_set_timeout_accepts_in_range(session):
    assert session.set_timeout(30) is True
    assert session.config.operation_timeout_seconds == 30


def test_config_is_locked_while_connected(connected):
    with pytest.raises(InvalidOperationError):
        connected.set_timeout(30)
    with pytest.raises(InvalidOperationError):
        connected.set_port("COM9")
    with pytest.raises(InvalidOperationError):
        connected.set_trace_enabled(True)
    with pytest.raises(InvalidOperationError):
        connected.set_transport(FakeTransport())


def test_new_port_is_used_on_next_connect(session, transport):
    session.set_port("/dev/ttyUSB0")
    session.connect("a")
    assert transport.open_calls[0][0] == "/dev/ttyUSB0"


def test_settings_are_read_at_construction(tmp_path, transport):
    settings = UserSettingsManager(str(tmp_path / "user_settings.json"))
    settings.set_value("port", "COM12")
    settings.set_value("timeout", "45")
    settings.set_value("trace_enabled", "true")

    session = DomeSession(transport, SerialConfig(), DomeConfig(), settings)

    assert session.serial_config.port == "COM12"
    assert session.config.operation_timeout_seconds == 45
    assert session.config.trace_enabled is True


def test_unset_settings_keep_config_values(tmp_path, transport):
    settings = UserSettingsManager(str(tmp_path / "user_settings.json"))

    session = DomeSession(transport, SerialConfig(port="COM4"), DomeConfig(operation_timeout_seconds=90), settings)

    assert session.serial_config.port == "COM4"
    assert session.config.operation_timeout_seconds == 90


def test_successful_changes_are_written_back(tmp_path, transport):
    path = str(tmp_path / "user_settings.json")
    session = DomeSession(transport, SerialConfig(), DomeConfig(), UserSettingsManager(path))

    session.set_port("COM5")
    session.set_timeout(120)
    session.set_timeout(500)
    session.set_trace_enabled(True)

    reloaded = UserSettingsManager(path)
    assert reloaded.get_value("port") == "COM5"
    assert reloaded.get_value("timeout") == "120"
    assert reloaded.get_value("trace_enabled") == "true"


def test_disconnect_all_closes_link(session, transport):
    session.connect("a")
    session.connect("b")
    session.disconnect_all()
    assert not session.connected
    assert transport.close_calls == 1
