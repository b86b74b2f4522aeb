import pytest

from vinu_alpaca.dome.state import RoofState, ScopeSafety, ShutterStatus
from vinu_alpaca.protocol.encoder import StatusFrame


@pytest.fixture
def status():
    return ShutterStatus()


def test_starts_unknown_unsafe_and_still(status):
    assert status.roof_state == RoofState.ERROR
    assert status.scope_safety == ScopeSafety.UNSAFE
    assert status.is_moving is False


@pytest.mark.parametrize("shutter", ["opening", "roof_opening", "xopeningx"])
def test_opening_token_sets_opening_and_moving(status, shutter):
    status.apply(StatusFrame(shutter, "safe", "moving"))
    assert status.roof_state == RoofState.OPENING
    assert status.is_moving is True


def test_closing_token_sets_closing_and_moving(status):
    status.apply_response("closing,safe,moving")
    assert status.roof_state == RoofState.CLOSING
    assert status.is_moving is True


@pytest.mark.parametrize("shutter, expected", [
    ("open", RoofState.OPEN),
    ("opened", RoofState.OPEN),
    ("roof_opened", RoofState.OPEN),
    ("closed", RoofState.CLOSED),
    ("is_closed", RoofState.CLOSED),
    ("stopped", RoofState.ERROR),
    ("openx", RoofState.ERROR),
])
def test_shutter_token_mapping(status, shutter, expected):
    status.apply(StatusFrame(shutter, "safe", "still"))
    assert status.roof_state == expected


@pytest.mark.parametrize("shutter", ["opening", "closed", "stopped", "open"])
def test_not_moving_o_forces_open_whatever_the_shutter_says(status, shutter):
    status.apply(StatusFrame(shutter, "safe", "not_moving_o"))
    assert status.roof_state == RoofState.OPEN
    assert status.is_moving is False


def test_not_moving_c_forces_closed(status):
    status.apply_response("opening,safe,not_moving_c")
    assert status.roof_state == RoofState.CLOSED
    assert status.is_moving is False


def test_plain_not_moving_keeps_shutter_position(status):
    status.apply_response("opened,safe,not_moving")
    assert status.roof_state == RoofState.OPEN
    assert status.is_moving is False


def test_moving_token_overrides_resting_shutter(status):
    status.apply_response("open,safe,moving")
    assert status.roof_state == RoofState.OPEN
    assert status.is_moving is True


def test_unknown_motion_token_means_not_moving(status):
    status.apply_response("opening,safe,wobbling")
    assert status.roof_state == RoofState.OPENING
    assert status.is_moving is False


@pytest.mark.parametrize("scope, safe", [("safe", True), ("unsafe", False), ("safely", False), ("SAFE", True)])
def test_scope_requires_exact_safe(status, scope, safe):
    status.apply_response(f"closed,{scope},not_moving_c")
    assert status.scope_safe is safe


def test_empty_reply_forces_error(status):
    status.apply_response("opening,safe,moving")
    status.apply_response("   ")
    assert status.roof_state == RoofState.ERROR
    assert status.is_moving is False


def test_malformed_reply_is_ignored(status):
    status.apply_response("closed,safe,not_moving_c")
    status.apply_response("opening,safe")
    assert status.roof_state == RoofState.CLOSED
    assert status.scope_safe is True


def test_missing_reply_changes_nothing(status):
    status.apply_response("opening,safe,moving")
    status.apply_response(None)
    assert status.roof_state == RoofState.OPENING
    assert status.is_moving is True


def test_reset_returns_to_disconnected_state(status):
    status.apply_response("opened,safe,moving")
    status.reset()
    assert status.snapshot() == {
        "roof_state": "error",
        "shutter_status": 4,
        "scope_safe": False,
        "is_moving": False,
    }
