"""
Web API endpoints for the operator control panel.

Works with both simulator and real hardware modes. The panel holds its
own session, so connecting here counts as one more client of the roof.
"""

import logging
from typing import Optional, List
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from vinu_alpaca.dome.controller import OperationOutcome
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.protocol.logger import get_protocol_logger
from vinu_alpaca.protocol.port_scanner import list_available_ports, scan_for_vinu
from vinu_alpaca.protocol.vinu_serial import SerialTransport
from vinu_alpaca.simulator.mock_roof import MockRoofTransport
from vinu_alpaca.utils.exceptions import InvalidOperationError, VinuException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gui", tags=["gui"])

GUI_SESSION_ID = "gui"


# ============================================================================
# Request/Response Models
# ============================================================================

class GUIStatus(BaseModel):
    """GUI status response."""
    mode: str  # "simulator" or "hardware"
    connected: bool
    gui_connected: bool
    clients: int
    port: str
    timeout: int
    trace_enabled: bool
    roof_state: str
    shutter_status: int
    scope_safe: bool
    is_moving: bool
    operation: str


class PortInfoResponse(BaseModel):
    """Serial port information."""
    name: str
    description: str
    hardware_id: str


class DiscoveredDeviceResponse(BaseModel):
    """Port that answered the VINU handshake."""
    port: str
    banner: str
    description: str


class SettingsResponse(BaseModel):
    port: str
    timeout: int
    trace_enabled: bool


class SettingsRequest(BaseModel):
    """Partial settings update; omitted fields are left alone."""
    port: Optional[str] = Field(None, description="Serial port name (e.g., 'COM3')")
    timeout: Optional[int] = Field(None, description="Operation timeout in seconds (1-300)")
    trace_enabled: Optional[bool] = Field(None, description="Protocol trace on/off")


class ModeInfo(BaseModel):
    """Mode information response."""
    current_mode: str  # "hardware" or "simulator"
    can_switch: bool  # False if connected
    reason: Optional[str] = None  # Why switching is not allowed


class SetModeRequest(BaseModel):
    """Request to change mode."""
    use_simulator: bool = Field(..., description="True for simulator, False for hardware")


# ============================================================================
# Helper Functions
# ============================================================================

def get_session(request: Request) -> DomeSession:
    """Get session manager from app.state."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Dome session not available")
    return session


def is_simulator_mode(request: Request) -> bool:
    return getattr(request.app.state, "simulator", None) is not None


def _outcome_dict(outcome: OperationOutcome) -> dict:
    return {
        "status": "ok" if outcome.ok else outcome.kind.value,
        "outcome": outcome.kind.value,
        "reason": outcome.reason,
        "roof_state": outcome.roof_state.name.lower() if outcome.roof_state is not None else None,
    }


def _settings_response(session: DomeSession) -> SettingsResponse:
    return SettingsResponse(
        port=session.serial_config.port,
        timeout=session.config.operation_timeout_seconds,
        trace_enabled=session.config.trace_enabled,
    )


# ============================================================================
# Status Endpoint
# ============================================================================

@router.get("/status", response_model=GUIStatus)
async def get_status(request: Request):
    """Last known roof status. Does not poll the controller."""
    session = get_session(request)
    snapshot = session.status.snapshot()

    return GUIStatus(
        mode="simulator" if is_simulator_mode(request) else "hardware",
        connected=session.connected,
        gui_connected=session.is_registered(GUI_SESSION_ID),
        clients=session.session_count,
        port=session.serial_config.port,
        timeout=session.config.operation_timeout_seconds,
        trace_enabled=session.config.trace_enabled,
        operation=session.shutter.operation_state.value,
        **snapshot,
    )


# ============================================================================
# Serial Port Endpoints
# ============================================================================

@router.get("/ports", response_model=List[PortInfoResponse])
def get_ports():
    """List available serial ports."""
    return [
        PortInfoResponse(name=p.name, description=p.description, hardware_id=p.hardware_id)
        for p in list_available_ports()
    ]


@router.post("/scan", response_model=List[DiscoveredDeviceResponse])
def scan_ports(request: Request):
    """Probe every serial port for a VINU controller."""
    session = get_session(request)
    config = getattr(request.app.state, "config", None)
    timeout = config.serial.scan_timeout_seconds if config else 2.0

    # Never probe the port we are talking to
    skip_ports = [session.serial_config.port] if session.connected else []

    devices = scan_for_vinu(timeout_seconds=timeout, skip_ports=skip_ports)
    return [DiscoveredDeviceResponse(**d.to_dict()) for d in devices]


# ============================================================================
# Settings Endpoints
# ============================================================================

@router.get("/settings", response_model=SettingsResponse)
async def get_settings(request: Request):
    return _settings_response(get_session(request))


@router.put("/settings", response_model=SettingsResponse)
async def put_settings(request: Request, body: SettingsRequest):
    """Change port, timeout or trace. Refused while any client is connected."""
    session = get_session(request)

    try:
        if body.timeout is not None and not session.set_timeout(body.timeout):
            raise HTTPException(status_code=400, detail="Timeout must be between 1 and 300 seconds")
        if body.port is not None:
            session.set_port(body.port)
        if body.trace_enabled is not None:
            session.set_trace_enabled(body.trace_enabled)
    except InvalidOperationError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"[GUI] Settings updated: {body.model_dump(exclude_none=True)}")
    return _settings_response(session)


# ============================================================================
# Connection Endpoints
# ============================================================================

@router.post("/connect")
def connect(request: Request):
    """Open the GUI's own session (opens the link if nobody else has)."""
    session = get_session(request)

    try:
        session.connect(GUI_SESSION_ID)
    except VinuException as e:
        logger.error(f"[GUI] Connect failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "ok", "message": f"Connected to {session.serial_config.port}", "clients": session.session_count}


@router.post("/disconnect")
def disconnect(request: Request):
    """Release the GUI's session (the link stays up for other clients)."""
    session = get_session(request)
    session.disconnect(GUI_SESSION_ID)
    return {"status": "ok", "message": "Disconnected", "clients": session.session_count}


# ============================================================================
# Roof Control Endpoints
# ============================================================================

@router.post("/open")
def open_roof(request: Request):
    session = get_session(request)
    logger.info("[GUI] User action: open roof")
    try:
        return _outcome_dict(session.shutter.open())
    except VinuException as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/close")
def close_roof(request: Request):
    session = get_session(request)
    logger.info("[GUI] User action: close roof")
    try:
        return _outcome_dict(session.shutter.close())
    except VinuException as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/abort")
def abort_roof(request: Request):
    session = get_session(request)
    logger.info("[GUI] User action: abort")
    try:
        session.shutter.abort()
    except VinuException as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok", "roof_state": session.status.roof_state.name.lower()}


# ============================================================================
# Protocol Trace Endpoints
# ============================================================================

@router.get("/logs")
async def get_protocol_logs(limit: int = 100):
    """Recent TX/RX frames with counters."""
    protocol_logger = get_protocol_logger()
    return {
        "messages": protocol_logger.get_messages(limit=limit),
        "stats": protocol_logger.get_stats()
    }


@router.post("/logs/clear")
async def clear_protocol_logs():
    get_protocol_logger().clear()
    logger.info("[GUI] Protocol logs cleared")
    return {"status": "ok", "message": "Logs cleared"}


@router.put("/logs/enabled")
async def set_logs_enabled(enabled: bool = True):
    """Switch the trace on or off for this run only (see /settings to persist)."""
    get_protocol_logger().enabled = enabled
    logger.info(f"[GUI] Protocol trace {'enabled' if enabled else 'disabled'}")
    return {"status": "ok", "enabled": enabled}


# ============================================================================
# Mode Switching Endpoints
# ============================================================================

@router.get("/mode", response_model=ModeInfo)
async def get_mode(request: Request):
    """Current mode (hardware/simulator) and whether it can be switched."""
    session = get_session(request)
    connected = session.connected

    return ModeInfo(
        current_mode="simulator" if is_simulator_mode(request) else "hardware",
        can_switch=not connected,
        reason="Cannot switch mode while connected. Disconnect first." if connected else None,
    )


@router.put("/mode")
async def set_mode(request: Request, mode_request: SetModeRequest):
    """
    Switch between hardware and simulator mode.

    Only allowed while disconnected. The preference is saved to
    user_settings.json and used on next startup.
    """
    session = get_session(request)
    config = getattr(request.app.state, "config", None)
    user_settings = getattr(request.app.state, "user_settings", None)

    if config is None:
        raise HTTPException(status_code=500, detail="Configuration not available")

    if mode_request.use_simulator:
        transport = MockRoofTransport(config.simulator)
        new_mode = "simulator"
    else:
        transport = SerialTransport()
        new_mode = "hardware"

    try:
        session.set_transport(transport)
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    request.app.state.simulator = transport if mode_request.use_simulator else None
    if user_settings is not None:
        user_settings.use_simulator = mode_request.use_simulator

    logger.info(f"[GUI] Mode switched to {new_mode}")
    return {"status": "ok", "message": f"Mode switched to {new_mode}", "mode": new_mode}
