"""
Pydantic models for ASCOM Alpaca API responses.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from vinu_alpaca.api.error_mapper import map_exception_to_alpaca


class AlpacaResponse(BaseModel):
    """
    Standard ASCOM Alpaca response envelope.

    Every device endpoint returns this, errors included (HTTP 200).
    """
    Value: Any = Field(None, description="Response value (type varies by endpoint)")
    ClientTransactionID: int = Field(0, description="Client transaction ID (echo from request)")
    ServerTransactionID: int = Field(description="Server transaction ID (auto-incremented)")
    ErrorNumber: int = Field(0, description="Error code (0 = success, non-zero = error)")
    ErrorMessage: str = Field("", description="Error message (empty string if no error)")


def make_response(
    value: Any,
    client_id: int = 0,
    server_id: int = 0,
    error: Optional[Exception] = None
) -> AlpacaResponse:
    """
    Build an Alpaca envelope.

    Args:
        value: Response value (ignored if error is given).
        client_id: Client transaction ID.
        server_id: Server transaction ID.
        error: Exception to report instead of a value.
    """
    if error is None:
        return AlpacaResponse(
            Value=value,
            ClientTransactionID=client_id,
            ServerTransactionID=server_id,
        )

    error_number, error_message = map_exception_to_alpaca(error)
    return make_error_response(error_number, error_message, client_id, server_id)


def make_error_response(
    error_number: int,
    error_message: str,
    client_id: int = 0,
    server_id: int = 0,
) -> AlpacaResponse:
    return AlpacaResponse(
        Value=None,
        ClientTransactionID=client_id,
        ServerTransactionID=server_id,
        ErrorNumber=error_number,
        ErrorMessage=error_message,
    )
