"""
ASCOM Alpaca API endpoints for the roll-off roof (IDomeV3).

Blocking handlers (anything that talks to the controller) are plain
``def`` so FastAPI runs them in its worker pool; that keeps abortslew
responsive while an openshutter call is still waiting for the roof.
"""

import logging
from fastapi import APIRouter, Form, Query, Depends, Request

from vinu_alpaca import __version__
from vinu_alpaca.api.app import get_next_transaction_id
from vinu_alpaca.api.error_mapper import map_outcome_to_alpaca
from vinu_alpaca.api.models import AlpacaResponse, make_response, make_error_response
from vinu_alpaca.dome.session import DomeSession
from vinu_alpaca.utils.exceptions import NotConnectedError, NotImplementedDriverError, VinuException


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/dome/0", tags=["dome"])

INTERFACE_VERSION = 3
DRIVER_NAME = "VINU Roll-Off Roof"
DRIVER_DESCRIPTION = "ASCOM Alpaca Dome driver for VINU roll-off roof controllers"


def get_session(request: Request) -> DomeSession:
    """Dependency to get the session manager from app.state."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise RuntimeError("Dome session not initialized")
    return session


def get_client_id(ClientTransactionID: int = Query(0)) -> int:
    """Extract client transaction ID from query params."""
    return ClientTransactionID


def get_client_id_form(ClientTransactionID: int = Form(0)) -> int:
    """Extract client transaction ID from form data."""
    return ClientTransactionID


def get_session_id_form(ClientID: int = Form(0)) -> int:
    """Alpaca ClientID identifies the session; clients without one share id 0."""
    return ClientID


# ----------------------------------------------------------------------
# Connection
# ----------------------------------------------------------------------

@router.get("/connected", response_model=AlpacaResponse)
async def get_connected(
    client_id: int = Depends(get_client_id),
    session: DomeSession = Depends(get_session)
):
    """True while any client holds a session."""
    return make_response(session.connected, client_id, get_next_transaction_id())


@router.put("/connected", response_model=AlpacaResponse)
def put_connected(
    Connected: bool = Form(...),
    client_id: int = Depends(get_client_id_form),
    session_id: int = Depends(get_session_id_form),
    session: DomeSession = Depends(get_session)
):
    """Connect or disconnect this client's session."""
    try:
        if Connected:
            session.connect(session_id)
        else:
            session.disconnect(session_id)
        return make_response(None, client_id, get_next_transaction_id())
    except VinuException as e:
        logger.error(f"Error in /connected PUT (client {session_id}): {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


# ----------------------------------------------------------------------
# Shutter
# ----------------------------------------------------------------------

@router.get("/shutterstatus", response_model=AlpacaResponse)
def get_shutterstatus(
    client_id: int = Depends(get_client_id),
    session: DomeSession = Depends(get_session)
):
    """Poll the controller and return the ASCOM ShutterState."""
    try:
        if not session.connected:
            raise NotConnectedError("Not connected.")
        value = int(session.shutter.poll_status())
        logger.debug(f"GET /shutterstatus -> {value}")
        return make_response(value, client_id, get_next_transaction_id())
    except VinuException as e:
        logger.error(f"Error in /shutterstatus: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.get("/slewing", response_model=AlpacaResponse)
async def get_slewing(
    client_id: int = Depends(get_client_id),
    session: DomeSession = Depends(get_session)
):
    """Last known motion flag (no poll)."""
    return make_response(session.status.is_moving, client_id, get_next_transaction_id())


def _run_shutter_operation(operation, tag: str, client_id: int) -> AlpacaResponse:
    try:
        outcome = operation()
    except VinuException as e:
        logger.error(f"Error in /{tag}: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)

    logger.info(f"/{tag} -> {outcome.kind.value} {outcome.reason}".rstrip())
    error_number, error_message = map_outcome_to_alpaca(outcome)
    if error_number:
        return make_error_response(error_number, error_message, client_id, get_next_transaction_id())
    return make_response(None, client_id, get_next_transaction_id())


@router.put("/openshutter", response_model=AlpacaResponse)
def put_openshutter(
    client_id: int = Depends(get_client_id_form),
    session: DomeSession = Depends(get_session)
):
    """Open the roof; returns when it is open, stopped, or refused."""
    return _run_shutter_operation(session.shutter.open, "openshutter", client_id)


@router.put("/closeshutter", response_model=AlpacaResponse)
def put_closeshutter(
    client_id: int = Depends(get_client_id_form),
    session: DomeSession = Depends(get_session)
):
    """Close the roof; returns when it is closed, stopped, or refused."""
    return _run_shutter_operation(session.shutter.close, "closeshutter", client_id)


@router.put("/abortslew", response_model=AlpacaResponse)
def put_abortslew(
    client_id: int = Depends(get_client_id_form),
    session: DomeSession = Depends(get_session)
):
    """Stop the roof and cancel any open/close in progress."""
    try:
        session.shutter.abort()
        return make_response(None, client_id, get_next_transaction_id())
    except VinuException as e:
        logger.error(f"Error in /abortslew: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


# ----------------------------------------------------------------------
# Identity and capabilities
# ----------------------------------------------------------------------

@router.get("/name", response_model=AlpacaResponse)
async def get_name(client_id: int = Depends(get_client_id)):
    return make_response(DRIVER_NAME, client_id, get_next_transaction_id())


@router.get("/description", response_model=AlpacaResponse)
async def get_description(client_id: int = Depends(get_client_id)):
    return make_response(DRIVER_DESCRIPTION, client_id, get_next_transaction_id())


@router.get("/driverinfo", response_model=AlpacaResponse)
async def get_driverinfo(client_id: int = Depends(get_client_id)):
    info = f"VINU roll-off roof Alpaca driver {__version__}"
    return make_response(info, client_id, get_next_transaction_id())


@router.get("/driverversion", response_model=AlpacaResponse)
async def get_driverversion(client_id: int = Depends(get_client_id)):
    major_minor = ".".join(__version__.split(".")[:2])
    return make_response(major_minor, client_id, get_next_transaction_id())


@router.get("/interfaceversion", response_model=AlpacaResponse)
async def get_interfaceversion(client_id: int = Depends(get_client_id)):
    return make_response(INTERFACE_VERSION, client_id, get_next_transaction_id())


@router.get("/supportedactions", response_model=AlpacaResponse)
async def get_supportedactions(client_id: int = Depends(get_client_id)):
    return make_response([], client_id, get_next_transaction_id())


CAPABILITIES = {
    "cansetshutter": True,
    "canfindhome": False,
    "canpark": False,
    "cansetaltitude": False,
    "cansetazimuth": False,
    "cansetpark": False,
    "canslave": False,
    "cansyncazimuth": False,
    "slaved": False,
}


def _capability_endpoint(value: bool):
    async def endpoint(client_id: int = Depends(get_client_id)) -> AlpacaResponse:
        return make_response(value, client_id, get_next_transaction_id())
    return endpoint


for _name, _value in CAPABILITIES.items():
    router.add_api_route(
        f"/{_name}", _capability_endpoint(_value), methods=["GET"], response_model=AlpacaResponse
    )


# ----------------------------------------------------------------------
# Not implemented for a roll-off roof
# ----------------------------------------------------------------------

UNSUPPORTED_GET = ("altitude", "azimuth", "athome", "atpark")

UNSUPPORTED_PUT = (
    "findhome",
    "park",
    "setpark",
    "slewtoaltitude",
    "slewtoazimuth",
    "synctoazimuth",
    "slaved",
    "action",
    "commandblind",
    "commandbool",
    "commandstring",
)


def _not_implemented_get(name: str):
    async def endpoint(client_id: int = Depends(get_client_id)) -> AlpacaResponse:
        error = NotImplementedDriverError(f"{name} is not implemented by a roll-off roof")
        return make_response(None, client_id, get_next_transaction_id(), error)
    return endpoint


def _not_implemented_put(name: str):
    async def endpoint(client_id: int = Depends(get_client_id_form)) -> AlpacaResponse:
        error = NotImplementedDriverError(f"{name} is not implemented by a roll-off roof")
        return make_response(None, client_id, get_next_transaction_id(), error)
    return endpoint


for _name in UNSUPPORTED_GET:
    router.add_api_route(
        f"/{_name}", _not_implemented_get(_name), methods=["GET"], response_model=AlpacaResponse
    )

for _name in UNSUPPORTED_PUT:
    router.add_api_route(
        f"/{_name}", _not_implemented_put(_name), methods=["PUT"], response_model=AlpacaResponse
    )
