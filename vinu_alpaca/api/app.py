"""
FastAPI application factory.
"""

import logging
import itertools
import threading
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vinu_alpaca import __version__
from vinu_alpaca.api.models import make_response
from vinu_alpaca.config.models import AppConfig
from vinu_alpaca.config.user_settings import UserSettingsManager
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.simulator.mock_roof import MockRoofTransport


logger = logging.getLogger(__name__)

DEVICE_NAME = "VINU Roll-Off Roof"
DEVICE_UNIQUE_ID = "vinu-alpaca-dome-0"

# Global server transaction ID counter (thread-safe)
_transaction_counter = itertools.count(1)
_transaction_lock = threading.Lock()


def get_next_transaction_id() -> int:
    """Next server transaction ID (thread-safe)."""
    with _transaction_lock:
        return next(_transaction_counter)


async def _client_transaction_id(request: Request) -> int:
    """Best-effort ClientTransactionID from query string or form body."""
    raw = request.query_params.get("ClientTransactionID")
    if raw is None and request.method == "PUT":
        form_data = await request.form()
        raw = form_data.get("ClientTransactionID")
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


def create_app(
    config: AppConfig,
    session: DomeSession,
    simulator: Optional[MockRoofTransport] = None,
    user_settings: Optional[UserSettingsManager] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Application configuration.
        session: Session manager for the roof.
        simulator: Simulator transport when running without hardware.
        user_settings: Persisted settings (mode preference).
    """
    # Routers import get_next_transaction_id from this module
    from vinu_alpaca.api.routes import router as dome_router
    from vinu_alpaca.api.gui_api import router as gui_router
    from vinu_alpaca.simulator.web_api import router as simulator_router

    app = FastAPI(
        title="VINU ASCOM Alpaca Driver",
        description="ASCOM Alpaca Dome driver for VINU roll-off roof controllers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware (allow all origins for Alpaca compatibility)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.session = session
    app.state.simulator = simulator
    app.state.user_settings = user_settings

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch all unhandled exceptions and return Alpaca error response."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)

        response = make_response(
            value=None,
            client_id=await _client_transaction_id(request),
            server_id=get_next_transaction_id(),
            error=exc
        )

        # Alpaca always returns 200
        return JSONResponse(status_code=200, content=response.model_dump())

    # Management API endpoints (required for client discovery)
    @app.get("/management/apiversions")
    async def get_api_versions(request: Request):
        """Return supported Alpaca API versions."""
        response = make_response([1], await _client_transaction_id(request), get_next_transaction_id())
        return response.model_dump()

    @app.get("/management/v1/configureddevices")
    async def get_configured_devices(request: Request):
        """Return list of configured devices."""
        devices = [
            {
                "DeviceName": DEVICE_NAME,
                "DeviceType": "Dome",
                "DeviceNumber": 0,
                "UniqueID": DEVICE_UNIQUE_ID,
            }
        ]
        response = make_response(devices, await _client_transaction_id(request), get_next_transaction_id())
        return response.model_dump()

    @app.get("/management/v1/description")
    async def get_server_description(request: Request):
        """Return server description."""
        description = {
            "ServerName": "VINU Alpaca Driver",
            "Manufacturer": "Vitor Nunes",
            "ManufacturerVersion": __version__,
            "Location": "localhost",
        }
        response = make_response(description, await _client_transaction_id(request), get_next_transaction_id())
        return response.model_dump()

    app.include_router(dome_router)
    app.include_router(gui_router)
    app.include_router(simulator_router)

    logger.info("FastAPI application created")
    return app
