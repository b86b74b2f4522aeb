"""
Web API endpoints for simulator control via GUI.
"""

import logging
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from vinu_alpaca.simulator.mock_roof import MockRoofTransport


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/simulator", tags=["simulator"])


def get_simulator(request: Request) -> MockRoofTransport:
    """Get simulator from app.state."""
    simulator = getattr(request.app.state, "simulator", None)
    if simulator is None:
        raise HTTPException(status_code=503, detail="Simulator not available")
    return simulator


class SimulatorStatus(BaseModel):
    """Simulator status response."""
    connected: bool
    shutter: str
    scope_safe: bool
    is_moving: bool
    position_percent: float
    travel_seconds: float
    inject_timeout: bool


class ScopeRequest(BaseModel):
    """Request to change the simulated telescope interlock."""
    safe: bool = Field(..., description="True if the telescope is parked safe")


@router.get("/status", response_model=SimulatorStatus)
async def get_status(request: Request):
    """Get current simulator status."""
    return SimulatorStatus(**get_simulator(request).get_state())


@router.post("/scope")
async def set_scope(request: Request, body: ScopeRequest):
    """Set the simulated scope safety interlock."""
    simulator = get_simulator(request)
    simulator.set_scope_safe(body.safe)
    logger.info(f"[Web GUI] User action: scope {'safe' if body.safe else 'unsafe'}")
    return {"status": "ok", "scope_safe": body.safe}


@router.post("/reset")
async def reset_simulator(request: Request):
    """Return the simulated roof to its initial state."""
    simulator = get_simulator(request)
    simulator.reset()
    logger.info("[Web GUI] User action: simulator reset")
    return {"status": "ok", **simulator.get_state()}
