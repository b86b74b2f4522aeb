import pytest
from fastapi.testclient import TestClient

from conftest import FakeTransport
from vinu_alpaca.api.app import create_app
from vinu_alpaca.config.models import AppConfig, DomeConfig, SerialConfig
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.simulator.mock_roof import MockRoofTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    return DomeSession(transport, SerialConfig(port="COM7"), DomeConfig(operation_timeout_seconds=1, poll_interval_ms=10))


@pytest.fixture
def client(session):
    return TestClient(create_app(AppConfig(), session))


def test_status_before_connect(client):
    status = client.get("/gui/status").json()
    assert status["mode"] == "hardware"
    assert status["connected"] is False
    assert status["roof_state"] == "error"
    assert status["port"] == "COM7"


def test_gui_holds_its_own_session(client, session):
    assert client.post("/gui/connect").status_code == 200
    session.connect(1)
    assert session.session_count == 2

    client.post("/gui/disconnect")
    assert session.connected
    assert client.get("/gui/status").json()["gui_connected"] is False


def test_settings_update_while_disconnected(client, session):
    response = client.put("/gui/settings", json={"port": "COM9", "timeout": 45})

    assert response.status_code == 200
    assert response.json() == {"port": "COM9", "timeout": 45, "trace_enabled": False}
    assert session.config.operation_timeout_seconds == 45


def test_settings_reject_bad_timeout(client):
    assert client.put("/gui/settings", json={"timeout": 0}).status_code == 400


def test_settings_locked_while_connected(client):
    client.post("/gui/connect")
    assert client.put("/gui/settings", json={"timeout": 60}).status_code == 409


def test_open_reports_outcome(client, transport):
    client.post("/gui/connect")
    transport.script("opening,safe,moving", "opened,safe,not_moving_o")

    body = client.post("/gui/open").json()

    assert body["outcome"] == "ok"
    assert body["roof_state"] == "open"


def test_protocol_trace_endpoints(client):
    assert client.put("/gui/logs/enabled", params={"enabled": "true"}).json()["enabled"] is True
    client.post("/gui/connect")

    logs = client.get("/gui/logs").json()
    assert logs["stats"]["tx_count"] == 0  # fake transport bypasses the trace
    assert client.post("/gui/logs/clear").json()["status"] == "ok"


def test_mode_switch_only_when_disconnected(client):
    client.post("/gui/connect")
    assert client.get("/gui/mode").json()["can_switch"] is False
    assert client.put("/gui/mode", json={"use_simulator": True}).status_code == 400


def test_switch_to_simulator(client, session):
    assert client.get("/simulator/status").status_code == 503

    response = client.put("/gui/mode", json={"use_simulator": True})

    assert response.json()["mode"] == "simulator"
    assert isinstance(session.transport, MockRoofTransport)
    assert client.get("/simulator/status").json()["shutter"] == "closed"

    assert client.post("/simulator/scope", json={"safe": False}).json()["scope_safe"] is False
    assert client.post("/simulator/reset").json()["scope_safe"] is True
